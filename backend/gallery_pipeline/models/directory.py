"""Canonical gallery directory and enrichment crawl bookkeeping."""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, Index

from gallery_pipeline.models.base import Base


class ExternalGalleryDirectory(Base):
    """Persisted canonical gallery, keyed by a stable synthetic id."""

    __tablename__ = "external_gallery_directory"

    gallery_id = Column(String(255), primary_key=True)
    # Nullable and non-unique: independent merge runs may compute different keys for one gallery.
    match_key = Column(String(1000), nullable=True, index=True)

    name = Column(String(300), nullable=False)
    country = Column(String(100), nullable=False)
    city = Column(String(150), nullable=False)
    website = Column(String(1000), nullable=True)
    bio = Column(Text, nullable=True)
    source_portal = Column(String(1000), nullable=True)  # "Naver, Google"
    source_count = Column(Integer, nullable=False, default=1)
    quality_score = Column(Integer, nullable=False, default=0)
    source_url = Column(String(1000), nullable=True)
    external_email = Column(String(320), nullable=True)

    # Enrichment fields, filled in over time by the gallery info crawler
    instagram = Column(String(300), nullable=True)
    founded_year = Column(Integer, nullable=True)
    space_size = Column(String(80), nullable=True)

    # Crawl back-off
    last_crawled_at = Column(DateTime, nullable=True)
    crawl_fail_count = Column(Integer, nullable=False, default=0)
    crawl_last_error = Column(String(300), nullable=True)
    crawl_last_error_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_external_gallery_directory_country_city", "country", "city"),
        Index("ix_external_gallery_directory_quality", "quality_score", "updated_at"),
    )

    @property
    def source_portals(self) -> list[str]:
        return [p.strip() for p in (self.source_portal or "").split(",") if p.strip()]


class GalleryInfoCrawlRun(Base):
    """One execution of the gallery info enrichment crawler."""

    __tablename__ = "gallery_info_crawl_runs"

    id = Column(Integer, primary_key=True, index=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    finished_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="running")  # running, success, error

    processed = Column(Integer, nullable=False, default=0)
    updated = Column(Integer, nullable=False, default=0)
    skipped = Column(Integer, nullable=False, default=0)
    errors = Column(Integer, nullable=False, default=0)

    error_sample = Column(String(300), nullable=True)
    duration_ms = Column(Integer, nullable=True)
