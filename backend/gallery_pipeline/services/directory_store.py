"""Persistence for canonical galleries.

Upserts are keyed on ``gallery_id``. Core fields are overwritten by the latest
canonicalization pass; enrichment fields (instagram, founded year, space size,
contact email) keep the stored value when the incoming one is null, so a sync
never blanks out what the enrichment crawler found.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gallery_pipeline.config import get_settings
from gallery_pipeline.models.base import dialect_insert
from gallery_pipeline.models.directory import ExternalGalleryDirectory
from gallery_pipeline.services.directory_quality import CanonicalDirectoryGallery

logger = logging.getLogger(__name__)

CORE_FIELDS = (
    "match_key",
    "name",
    "country",
    "city",
    "website",
    "bio",
    "source_portal",
    "source_count",
    "quality_score",
    "source_url",
)
COALESCE_FIELDS = ("instagram", "founded_year", "space_size", "external_email")


def row_to_canonical(row: ExternalGalleryDirectory) -> CanonicalDirectoryGallery:
    return CanonicalDirectoryGallery(
        gallery_id=row.gallery_id,
        match_key=row.match_key or "",
        name=row.name,
        country=row.country,
        city=row.city,
        website=row.website,
        bio=row.bio,
        source_portals=row.source_portals,
        source_url=row.source_url,
        external_email=row.external_email,
        instagram=row.instagram,
        founded_year=row.founded_year,
        space_size=row.space_size,
        quality_score=int(row.quality_score or 0),
    )


def _to_values(item: CanonicalDirectoryGallery) -> Optional[Dict[str, Any]]:
    gallery_id = str(item.gallery_id or "").strip()
    name = str(item.name or "").strip()
    country = str(item.country or "").strip()
    city = str(item.city or "").strip()
    if not gallery_id or not name or not country or not city:
        return None
    return {
        "gallery_id": gallery_id,
        "match_key": str(item.match_key or "").strip() or None,
        "name": name,
        "country": country,
        "city": city,
        "website": item.website or None,
        "bio": item.bio or None,
        "source_portal": ", ".join(item.source_portals) or None,
        "source_count": len(item.source_portals),
        "quality_score": int(item.quality_score),
        "source_url": item.source_url or None,
        "external_email": item.external_email or None,
        "instagram": item.instagram or None,
        "founded_year": item.founded_year,
        "space_size": item.space_size or None,
    }


class DirectoryStore:
    """Read/write access to ``external_gallery_directory``."""

    def __init__(self, session: Session, chunk_size: Optional[int] = None):
        self.session = session
        self.chunk_size = max(1, int(chunk_size or get_settings().directory_upsert_chunk_size))

    def upsert(self, items: Iterable[CanonicalDirectoryGallery]) -> int:
        """Write a canonical batch. Returns the number of rows sent to the database."""
        rows: List[Dict[str, Any]] = []
        seen: set[str] = set()
        for item in items:
            values = _to_values(item)
            if values is None:
                continue
            # A single statement may not touch the same key twice; first (best) wins.
            if values["gallery_id"] in seen:
                logger.info("Dropping duplicate gallery id in batch: %s", values["gallery_id"])
                continue
            seen.add(values["gallery_id"])
            rows.append(values)

        insert = dialect_insert(self.session)
        table = ExternalGalleryDirectory.__table__
        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start:start + self.chunk_size]
            stmt = insert(table).values(chunk)
            update_set = {name: stmt.excluded[name] for name in CORE_FIELDS}
            for name in COALESCE_FIELDS:
                update_set[name] = func.coalesce(stmt.excluded[name], table.c[name])
            update_set["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=[table.c.gallery_id], set_=update_set)
            self.session.execute(stmt)
            self.session.commit()
        logger.info("Upserted %d directory rows in %d chunk(s)", len(rows), -(-len(rows) // self.chunk_size))
        return len(rows)

    def list_all(self) -> List[CanonicalDirectoryGallery]:
        rows = self.session.execute(
            select(ExternalGalleryDirectory).order_by(
                ExternalGalleryDirectory.quality_score.desc(),
                ExternalGalleryDirectory.updated_at.desc(),
                ExternalGalleryDirectory.name.asc(),
            )
        ).scalars().all()
        return [row_to_canonical(row) for row in rows]

    def get_by_id(self, gallery_id: str) -> Optional[CanonicalDirectoryGallery]:
        key = str(gallery_id or "").strip()
        if not key:
            return None
        row = self.session.get(ExternalGalleryDirectory, key)
        return row_to_canonical(row) if row is not None else None
