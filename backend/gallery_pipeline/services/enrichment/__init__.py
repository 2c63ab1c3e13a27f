"""Directory enrichment: regex extractors and the gallery info crawler."""

from .extractors import (
    extract_email,
    extract_founded_year,
    extract_instagram,
    extract_space_size,
)
from .crawler import (
    EnrichmentBatchCache,
    EnrichmentOutcome,
    EnrichmentTarget,
    GalleryInfoCrawler,
    crawl_gallery_info,
)

__all__ = [
    "GalleryInfoCrawler",
    "crawl_gallery_info",
    "EnrichmentBatchCache",
    "EnrichmentOutcome",
    "EnrichmentTarget",
    "extract_email",
    "extract_founded_year",
    "extract_instagram",
    "extract_space_size",
]
