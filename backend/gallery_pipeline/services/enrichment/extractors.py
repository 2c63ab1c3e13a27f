"""Best-effort fact extraction from a gallery homepage.

Each extractor takes raw HTML and returns a value or ``None``. They are
independent of one another and never raise on odd input.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

MIN_FOUNDED_YEAR = 1850

# instagram.com/<segment> paths that are not profiles
INSTAGRAM_NON_PROFILE = {"p", "reel", "reels", "tv", "stories", "explore", "accounts", "sharer"}

_INSTAGRAM_PATTERNS = [
    re.compile(r'href="https?://(?:www\.)?instagram\.com/@?([A-Za-z0-9_.]{1,30})/?"', re.IGNORECASE),
    re.compile(r'content="https?://(?:www\.)?instagram\.com/@?([A-Za-z0-9_.]{1,30})/?"', re.IGNORECASE),
    re.compile(r'"(?:instagram|ig_url)":\s*"https?://(?:www\.)?instagram\.com/@?([A-Za-z0-9_.]{1,30})', re.IGNORECASE),
    re.compile(r"instagram\.com/@?([A-Za-z0-9_.]{2,30})(?=[^A-Za-z0-9_.]|$)", re.IGNORECASE),
]

_YEAR = r"(?<!\d)((?:18|19|20)\d{2})(?!\d)"
_FOUNDED_PATTERNS = [
    re.compile(rf"(?:founded|established|est\.?|since)\s+(?:in\s+)?{_YEAR}", re.IGNORECASE),
    re.compile(rf"{_YEAR}\s*년도?\s*(?:에\s*)?(?:설립|창립|개관)"),
    re.compile(rf"{_YEAR}\s*年?\s*(?:に\s*)?(?:設立|創立)"),
    re.compile(rf"(?:opened|open\s+since|opening)\s+(?:in\s+)?{_YEAR}", re.IGNORECASE),
    re.compile(rf"(?:gegründet|fondée?|fundada|fondata)\s+(?:im?\s+|en\s+|nel\s+)?{_YEAR}", re.IGNORECASE),
    re.compile(rf"(?:設立|創立|創設|創廊|開廊|開設)\s*[:：]?\s*{_YEAR}"),
]

_EMAIL = re.compile(r"\b([A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,})\b")
_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")

_SPACE_PATTERNS = [
    re.compile(r"(?:floor|gallery|exhibition)\s+(?:area|space)[^.]{0,40}?\d[\d,]*(?:\.\d+)?\s*(?:m²|㎡|sqm)", re.IGNORECASE),
    re.compile(r"(?:총\s*면적|展示面積)[^\d]{0,20}\d[\d,]*(?:\.\d+)?\s*(?:㎡|m²|평|坪)"),
    re.compile(r"\d[\d,]*(?:\.\d+)?\s*(?:m²|㎡|sqm|sq\.?\s*m\b|square\s+met(?:er|re)s?|평|坪)", re.IGNORECASE),
    re.compile(r"\d[\d,]*(?:\.\d+)?\s*(?:sq\.?\s*ft|sqft|square\s+f(?:oo|ee)t|ft²)", re.IGNORECASE),
]
_SPACE_MAX_CHARS = 80

_TAG = re.compile(r"<[^>]+>")
_ENTITY = re.compile(r"&[a-z]+;", re.IGNORECASE)
_WS = re.compile(r"\s+")


def strip_markup(html: str) -> str:
    return _ENTITY.sub(" ", _TAG.sub(" ", html or ""))


def extract_instagram(html: str) -> Optional[str]:
    for pattern in _INSTAGRAM_PATTERNS:
        for match in pattern.finditer(html or ""):
            handle = match.group(1).lower().rstrip(".")
            if not handle or handle in INSTAGRAM_NON_PROFILE:
                continue
            return f"https://www.instagram.com/{handle}/"
    return None


def extract_founded_year(html: str, current_year: Optional[int] = None) -> Optional[int]:
    text = strip_markup(html)
    latest = current_year or datetime.utcnow().year
    for pattern in _FOUNDED_PATTERNS:
        for match in pattern.finditer(text):
            year = int(match.group(1))
            if MIN_FOUNDED_YEAR <= year <= latest:
                return year
    return None


def extract_email(html: str) -> Optional[str]:
    for match in _EMAIL.finditer(html or ""):
        email = match.group(1).lower()
        if email.endswith(_IMAGE_SUFFIXES):
            continue
        return email
    return None


def extract_space_size(html: str) -> Optional[str]:
    text = strip_markup(html)
    for pattern in _SPACE_PATTERNS:
        match = pattern.search(text)
        if match:
            return _WS.sub(" ", match.group(0)).strip()[:_SPACE_MAX_CHARS]
    return None
