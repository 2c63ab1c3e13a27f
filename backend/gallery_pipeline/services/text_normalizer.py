"""Text folding primitives shared by the directory and validation pipelines.

Every comparison of names, cities, hosts or page text goes through these
helpers so that two components never disagree on what "the same string" means.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

from selectolax.parser import HTMLParser

# Latin (ASCII + accented letters), Hangul, Hiragana/Katakana and CJK ideographs.
_DISALLOWED_CHARS = re.compile(
    r"[^a-z0-9\u00df-\u00f6\u00f8-\u024f\u3131-\uD79D\u3040-\u30ff\u4e00-\u9faf\s-]"
)
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s-]|_")
_SLUG_DISALLOWED = re.compile(r"[^a-z0-9_]")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize(text: Optional[str]) -> str:
    """Fold a name/city/country into its comparable form."""
    value = str(text or "").strip().lower()
    value = value.replace("&", " and ")
    value = _DISALLOWED_CHARS.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def slugify(text: Optional[str]) -> str:
    return _SLUG_DISALLOWED.sub("", _WHITESPACE.sub("_", normalize(text)))


def website_url(url: Optional[str]) -> str:
    """Fetchable form of a stored website: ``https://`` is assumed when no scheme is given."""
    raw = str(url or "").strip()
    if raw and not _SCHEME.match(raw):
        raw = f"https://{raw}"
    return raw


def host_from_url(url: Optional[str]) -> str:
    """Hostname without a leading ``www.``; empty string when nothing parses."""
    raw = str(url or "").strip()
    if not raw:
        return ""
    raw = website_url(raw)
    try:
        host = (urlparse(raw).hostname or "").lower().strip()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    if not host or "." not in host or " " in host:
        return ""
    return host


def is_http_url(url: Optional[str]) -> bool:
    raw = str(url or "").strip()
    if not re.match(r"^https?://", raw, re.IGNORECASE):
        return False
    try:
        return bool(urlparse(raw).hostname)
    except ValueError:
        return False


def normalize_page_text(text: Optional[str]) -> str:
    """Unicode-aware folding for free text (page bodies, listing themes)."""
    value = str(text or "").lower()
    value = _NON_WORD.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def html_to_text(html: Optional[str]) -> str:
    """Visible text of an HTML document, scripts and styles removed."""
    raw = str(html or "")
    if not raw.strip():
        return ""
    tree = HTMLParser(raw)
    for node in tree.css("script, style, noscript"):
        node.decompose()
    root = tree.body or tree.root
    if root is None:
        return ""
    return root.text(separator=" ", strip=True) or ""
