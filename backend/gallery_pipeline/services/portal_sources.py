"""Raw portal records feeding the directory sync.

Operators maintain a JSON list of raw records; when it is missing or holds no
usable rows the built-in catalog is used instead.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from gallery_pipeline.config import get_settings
from gallery_pipeline.services.directory_quality import RawDirectoryRecord

logger = logging.getLogger(__name__)


class InvalidSourceListError(ValueError):
    """Raised when a source list contains no row with name, country and city."""


@dataclass
class PortalSourceLoad:
    sources: List[RawDirectoryRecord]
    origin: str  # json, fallback
    path: str


def _raw(name, country, city, website=None, portal=None, **extra) -> RawDirectoryRecord:
    return RawDirectoryRecord(name=name, country=country, city=city, website=website, source_portal=portal, **extra)


# Seeds carry explicit gallery ids so product pages can link to them directly.
PORTAL_GALLERY_SEEDS: List[RawDirectoryRecord] = [
    _raw(
        "Kukje Gallery", "한국", "Seoul", "https://www.kukjegallery.com", "Naver",
        gallery_id="__ext_dir_kukje_seoul",
        bio="Leading contemporary gallery in Seoul.",
        source_url="https://www.kukjegallery.com",
    ),
    _raw(
        "Gallery Hyundai", "한국", "Seoul", "https://www.galleryhyundai.com", "Naver",
        gallery_id="__ext_dir_hyundai_seoul",
        bio="Historic Korean gallery with international program.",
        source_url="https://www.galleryhyundai.com",
    ),
    _raw(
        "Johyun Gallery", "한국", "Busan", "https://www.johyungallery.com", "Naver",
        gallery_id="__ext_dir_johyun_busan",
        bio="Major gallery in Busan for Korean and global artists.",
        source_url="https://www.johyungallery.com",
    ),
    _raw(
        "Taka Ishii Gallery", "일본", "Tokyo", "https://www.takaishiigallery.com", "Yahoo Japan",
        gallery_id="__ext_dir_taka_ishii_tokyo",
        bio="Contemporary art and photography program in Tokyo.",
        source_url="https://www.takaishiigallery.com",
    ),
    _raw(
        "Tomio Koyama Gallery", "일본", "Tokyo", "https://www.tomiokoyamagallery.com", "Yahoo Japan",
        gallery_id="__ext_dir_tomio_tokyo",
        bio="Tokyo-based contemporary gallery with global roster.",
        source_url="https://www.tomiokoyamagallery.com",
    ),
    _raw(
        "Lisson Gallery", "영국", "London", "https://www.lissongallery.com", "Google",
        gallery_id="__ext_dir_lisson_london",
        bio="International contemporary gallery founded in London.",
        source_url="https://www.lissongallery.com",
    ),
]

# Multi-portal catalog; overlapping naming variants are intentional.
PORTAL_GALLERY_SOURCES: List[RawDirectoryRecord] = [
    _raw("Kukje Gallery", "한국", "Seoul", "https://www.kukjegallery.com", "Naver",
         source_url="https://search.naver.com/search.naver?query=Kukje+Gallery",
         bio="Leading contemporary gallery in Seoul."),
    _raw("Gallery Hyundai", "한국", "Seoul", "https://www.galleryhyundai.com", "Naver",
         source_url="https://search.naver.com/search.naver?query=Gallery+Hyundai"),
    _raw("PKM Gallery", "한국", "Seoul", "https://www.pkmgallery.com", "Naver"),
    _raw("Johyun Gallery", "한국", "Busan", "https://www.johyungallery.com", "Naver"),
    _raw("Gallery BHAK", "한국", "Seoul", "https://www.gallerybhak.com", "Naver"),
    _raw("Taka Ishii Gallery", "일본", "Tokyo", "https://www.takaishiigallery.com", "Yahoo Japan"),
    _raw("Tomio Koyama Gallery", "일본", "Tokyo", "https://www.tomiokoyamagallery.com", "Yahoo Japan"),
    _raw("SCAI THE BATHHOUSE", "일본", "Tokyo", "https://www.scaithebathhouse.com", "Yahoo Japan"),
    _raw("imura art gallery", "일본", "Kyoto", "https://www.imuraart.com", "Yahoo Japan"),
    _raw("Lisson Gallery", "영국", "London", "https://www.lissongallery.com", "Google"),
    _raw("White Cube", "영국", "London", "https://www.whitecube.com", "Google"),
    _raw("Victoria Miro", "영국", "London", "https://www.victoria-miro.com", "Google"),
    _raw("Hauser & Wirth", "영국", "London", "https://www.hauserwirth.com", "Google"),
    _raw("Perrotin", "프랑스", "Paris", "https://www.perrotin.com", "Google"),
    _raw("Galerie Kamel Mennour", "프랑스", "Paris", "https://www.kamelmennour.com", "Google"),
    _raw("Galerie Lelong & Co.", "프랑스", "Paris", "https://www.galerie-lelong.com", "Google"),
    _raw("Gagosian", "미국", "New York", "https://gagosian.com", "Google"),
    _raw("David Zwirner", "미국", "New York", "https://www.davidzwirner.com", "Google"),
    _raw("Pace Gallery", "미국", "New York", "https://www.pacegallery.com", "Google"),
    _raw("Blum & Poe", "미국", "Los Angeles", "https://www.blumandpoe.com", "Google"),
    _raw("Sprüth Magers", "독일", "Berlin", "https://www.spruethmagers.com", "Google"),
    _raw("Konig Galerie", "독일", "Berlin", "https://www.koeniggalerie.com", "Google"),
    _raw("neugerriemschneider", "독일", "Berlin", "https://www.neugerriemschneider.com", "Google"),
    _raw("Massimo De Carlo", "이탈리아", "Milan", "https://www.massimodecarlo.com", "Google"),
    _raw("Galleria Continua", "이탈리아", "San Gimignano", "https://www.galleriacontinua.com", "Google"),
    _raw("ShanghART Gallery", "중국", "Shanghai", "https://www.shanghartgallery.com", "Baidu"),
    _raw("Long March Space", "중국", "Beijing", "https://www.longmarchspace.com", "Baidu"),
    _raw("Galerie Eva Presenhuber", "스위스", "Zurich", "https://www.presenhuber.com", "Google"),
    _raw("Roslyn Oxley9 Gallery", "호주", "Sydney", "https://www.roslynoxley9.com.au", "Google"),
    _raw("Kukje", "한국", "Seoul", "https://kukjegallery.com", "Google"),
    _raw("Gallery Hyundai Seoul", "한국", "Seoul", "https://galleryhyundai.com", "Google"),
    _raw("Konig Galerie", "독일", "Berlin", "https://koeniggalerie.com", "Bing"),
]


def sanitize_source(entry: Any) -> Optional[RawDirectoryRecord]:
    if not isinstance(entry, dict):
        return None
    record = RawDirectoryRecord.from_dict(entry)
    if not record.name or not record.country or not record.city:
        return None
    return record


def sanitize_sources(entries: Any) -> List[RawDirectoryRecord]:
    if not isinstance(entries, list):
        return []
    return [record for record in (sanitize_source(e) for e in entries) if record is not None]


def _resolve(path: Optional[str]) -> Path:
    return Path(path or get_settings().portal_sources_path)


def load_portal_sources(path: Optional[str] = None) -> PortalSourceLoad:
    source_path = _resolve(path)
    try:
        parsed = json.loads(source_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("No portal source file at %s, using built-in catalog", source_path)
        parsed = None
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable portal source file %s: %s", source_path, exc)
        parsed = None

    sources = sanitize_sources(parsed)
    if sources:
        return PortalSourceLoad(sources=sources, origin="json", path=str(source_path))
    return PortalSourceLoad(sources=list(PORTAL_GALLERY_SOURCES), origin="fallback", path=str(source_path))


def save_portal_sources(entries: Any, path: Optional[str] = None) -> List[RawDirectoryRecord]:
    sources = sanitize_sources(entries)
    if not sources:
        raise InvalidSourceListError("No valid source entries. Each row needs name/country/city.")
    source_path = _resolve(path)
    source_path.parent.mkdir(parents=True, exist_ok=True)
    payload = [
        {
            key: value
            for key, value in {
                "name": s.name,
                "country": s.country,
                "city": s.city,
                "website": s.website,
                "bio": s.bio,
                "sourcePortal": s.source_portal,
                "sourceUrl": s.source_url,
                "externalEmail": s.external_email,
            }.items()
            if value
        }
        for s in sources
    ]
    source_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return sources
