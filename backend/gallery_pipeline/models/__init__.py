from gallery_pipeline.models.base import Base, ensure_schema
from gallery_pipeline.models.directory import ExternalGalleryDirectory, GalleryInfoCrawlRun
from gallery_pipeline.models.open_call import OpenCall, OpenCallValidation, ValidationStatus

__all__ = [
    "Base", "ensure_schema",
    "ExternalGalleryDirectory", "GalleryInfoCrawlRun",
    "OpenCall", "OpenCallValidation", "ValidationStatus",
]
