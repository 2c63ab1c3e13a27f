"""Record linkage for the gallery directory.

Raw portal observations are grouped by a deterministic match key and folded
into canonical galleries. Merges are "first non-empty value wins" per field,
portals are set-unioned, and the quality score is recomputed from scratch
after every merge so it stays a pure function of the merged state.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from gallery_pipeline.services.text_normalizer import host_from_url, normalize, slugify

GALLERY_ID_PREFIX = "__ext_dir_"

QUALITY_BASE = 40
QUALITY_WEBSITE = 25
QUALITY_EMAIL = 10
QUALITY_BIO = 10
QUALITY_PER_PORTAL = 5
QUALITY_PORTAL_CAP = 15

# Generic venue words ignored when comparing names under a shared hostname,
# so "Kukje" and "Kukje Gallery" on kukjegallery.com fold together.
VENUE_STOPWORDS = {
    "the",
    "and",
    "gallery",
    "galleries",
    "galerie",
    "galeria",
    "galleria",
    "gallerie",
    "art",
    "arts",
    "갤러리",
    "화랑",
    "ギャラリー",
    "画廊",
}


@dataclass
class RawDirectoryRecord:
    """One observation of a gallery from a single portal."""
    name: str
    country: str
    city: str
    gallery_id: Optional[str] = None
    website: Optional[str] = None
    bio: Optional[str] = None
    source_portal: Optional[str] = None
    source_url: Optional[str] = None
    external_email: Optional[str] = None
    instagram: Optional[str] = None
    founded_year: Optional[int] = None
    space_size: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawDirectoryRecord":
        founded = data.get("founded_year", data.get("foundedYear"))
        try:
            founded_year = int(founded) if founded not in (None, "") else None
        except (TypeError, ValueError):
            founded_year = None
        return cls(
            name=_clean(data.get("name")) or "",
            country=_clean(data.get("country")) or "",
            city=_clean(data.get("city")) or "",
            gallery_id=_clean(data.get("gallery_id", data.get("galleryId"))),
            website=_clean(data.get("website")),
            bio=_clean(data.get("bio")),
            source_portal=_clean(data.get("source_portal", data.get("sourcePortal"))),
            source_url=_clean(data.get("source_url", data.get("sourceUrl"))),
            external_email=_clean(data.get("external_email", data.get("externalEmail"))),
            instagram=_clean(data.get("instagram")),
            founded_year=founded_year,
            space_size=_clean(data.get("space_size", data.get("spaceSize"))),
        )


@dataclass
class CanonicalDirectoryGallery:
    """Merged, de-duplicated gallery."""
    gallery_id: str
    match_key: str
    name: str
    country: str
    city: str
    website: Optional[str] = None
    bio: Optional[str] = None
    source_portals: List[str] = field(default_factory=list)
    source_url: Optional[str] = None
    external_email: Optional[str] = None
    instagram: Optional[str] = None
    founded_year: Optional[int] = None
    space_size: Optional[str] = None
    quality_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gallery_id": self.gallery_id,
            "match_key": self.match_key,
            "name": self.name,
            "country": self.country,
            "city": self.city,
            "website": self.website,
            "bio": self.bio,
            "source_portals": list(self.source_portals),
            "source_url": self.source_url,
            "external_email": self.external_email,
            "instagram": self.instagram,
            "founded_year": self.founded_year,
            "space_size": self.space_size,
            "quality_score": self.quality_score,
        }


def _clean(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    return text or None


def _name_signature(name: str, city: str) -> str:
    normalized = normalize(name)
    city_tokens = set(normalize(city).split())
    tokens = [t for t in normalized.split() if t not in VENUE_STOPWORDS and t not in city_tokens]
    return " ".join(tokens) or normalized


def build_match_key(record: RawDirectoryRecord) -> str:
    """Host-qualified key when a hostname resolves, else name + location.

    ``hostncc:<host>|<name signature>|<country>|<city>``: under a shared host
    the name is compared by its signature, the normalized name without
    generic venue words (``VENUE_STOPWORDS``) and without the city's own
    tokens, so "Kukje" and "Kukje Gallery Seoul" on kukjegallery.com fold into
    one gallery. ``ncc:<name>|<country>|<city>`` keeps the full normalized name.
    """
    country = normalize(record.country)
    city = normalize(record.city)
    host = host_from_url(record.website or record.source_url)
    if host:
        return f"hostncc:{host}|{_name_signature(record.name, record.city)}|{country}|{city}"
    return f"ncc:{normalize(record.name)}|{country}|{city}"


def compute_quality_score(
    *,
    has_website: bool,
    has_email: bool,
    has_bio: bool,
    source_portals: Iterable[str],
) -> int:
    score = QUALITY_BASE
    if has_website:
        score += QUALITY_WEBSITE
    if has_email:
        score += QUALITY_EMAIL
    if has_bio:
        score += QUALITY_BIO
    distinct = {p for p in source_portals if p}
    score += min(QUALITY_PORTAL_CAP, QUALITY_PER_PORTAL * len(distinct))
    return score


def _score(gallery: CanonicalDirectoryGallery) -> int:
    return compute_quality_score(
        has_website=bool(gallery.website),
        has_email=bool(gallery.external_email),
        has_bio=bool(gallery.bio),
        source_portals=gallery.source_portals,
    )


def synthesize_gallery_id(name: str, country: str, city: str) -> str:
    """ASCII slug of name, country and city.

    Names that lose characters in the slug (Hangul, kana, CJK, accents) get a
    short digest of their normalized form appended so distinct galleries never
    share an id.
    """
    gallery_id = f"{GALLERY_ID_PREFIX}{slugify(f'{name}_{country}_{city}')}"
    folded_name = normalize(name)
    if folded_name.isascii():
        return gallery_id
    identity = f"{folded_name}|{normalize(country)}|{normalize(city)}"
    digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:10]
    return f"{gallery_id}_{digest}"


def _seed(record: RawDirectoryRecord, match_key: str) -> CanonicalDirectoryGallery:
    name = record.name.strip()
    country = record.country.strip()
    city = record.city.strip()
    gallery_id = _clean(record.gallery_id) or synthesize_gallery_id(name, country, city)
    portal = _clean(record.source_portal)
    gallery = CanonicalDirectoryGallery(
        gallery_id=gallery_id,
        match_key=match_key,
        name=name,
        country=country,
        city=city,
        website=_clean(record.website),
        bio=_clean(record.bio),
        source_portals=[portal] if portal else [],
        source_url=_clean(record.source_url),
        external_email=_clean(record.external_email),
        instagram=_clean(record.instagram),
        founded_year=record.founded_year,
        space_size=_clean(record.space_size),
    )
    gallery.quality_score = _score(gallery)
    return gallery


def merge_record(existing: CanonicalDirectoryGallery, record: RawDirectoryRecord) -> CanonicalDirectoryGallery:
    portal = _clean(record.source_portal)
    portals = list(existing.source_portals)
    if portal and portal not in portals:
        portals.append(portal)
    merged = replace(
        existing,
        website=existing.website or _clean(record.website),
        bio=existing.bio or _clean(record.bio),
        source_url=existing.source_url or _clean(record.source_url),
        external_email=existing.external_email or _clean(record.external_email),
        instagram=existing.instagram or _clean(record.instagram),
        founded_year=existing.founded_year if existing.founded_year is not None else record.founded_year,
        space_size=existing.space_size or _clean(record.space_size),
        source_portals=portals,
    )
    merged.quality_score = _score(merged)
    return merged


def _sort_key(gallery: CanonicalDirectoryGallery):
    return (-gallery.quality_score, gallery.country, gallery.city, gallery.name)


def canonicalize(records: Iterable[RawDirectoryRecord]) -> List[CanonicalDirectoryGallery]:
    """Fold raw records into canonical galleries, best quality first.

    Records missing a name, country or city are dropped. Output is sorted by
    quality descending, then country, city and name ascending.
    """
    by_key: Dict[str, CanonicalDirectoryGallery] = {}
    for record in records:
        if not (_clean(record.name) and _clean(record.country) and _clean(record.city)):
            continue
        key = build_match_key(record)
        existing = by_key.get(key)
        by_key[key] = merge_record(existing, record) if existing else _seed(record, key)
    return sorted(by_key.values(), key=_sort_key)
