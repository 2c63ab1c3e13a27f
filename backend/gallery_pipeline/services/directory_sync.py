"""Directory sync job: portal sources -> canonicalizer -> directory store."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from gallery_pipeline.config import get_settings
from gallery_pipeline.services.directory_quality import canonicalize
from gallery_pipeline.services.directory_store import DirectoryStore
from gallery_pipeline.services.portal_sources import PORTAL_GALLERY_SEEDS, load_portal_sources

logger = logging.getLogger(__name__)


def sync_gallery_directory(session: Session, sources_path: Optional[str] = None) -> Dict[str, Any]:
    if not get_settings().directory_sync_enabled:
        return {"ok": True, "skipped": True, "reason": "directory_sync_disabled"}

    loaded = load_portal_sources(sources_path)
    merged_raw = [*loaded.sources, *PORTAL_GALLERY_SEEDS]
    canonical = canonicalize(merged_raw)
    DirectoryStore(session).upsert(canonical)

    countries = Counter(g.country for g in canonical)
    summary = {
        "ok": True,
        "synced": len(canonical),
        "raw_input": len(merged_raw),
        "deduped": len(merged_raw) - len(canonical),
        "countries": dict(countries),
        "source": f"portal-seeds+{loaded.origin}",
    }
    logger.info(
        "Directory sync: %d raw -> %d canonical (source=%s)",
        summary["raw_input"], summary["synced"], summary["source"],
    )
    return summary
