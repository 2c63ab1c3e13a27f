"""Celery tasks for the directory and open call pipelines.

Each task opens its own session, ensures the schema, runs one job body and
returns the job's JSON summary. The ``run_*`` functions are the same entry
points without Celery, used by the HTTP job triggers.
"""
import logging
from typing import Any, Callable, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from gallery_pipeline.workers.celery_app import celery_app
from gallery_pipeline.config import get_settings
from gallery_pipeline.models.base import ensure_schema
from gallery_pipeline.services.directory_sync import sync_gallery_directory as _sync_gallery_directory
from gallery_pipeline.services.enrichment import crawl_gallery_info as _crawl_gallery_info
from gallery_pipeline.services.open_call_validation import validate_external_open_calls

logger = logging.getLogger(__name__)

# Sync engine for Celery workers
settings = get_settings()
sync_engine = create_engine(settings.database_url_sync, echo=settings.debug)
SessionLocal = sessionmaker(bind=sync_engine)


def _run_job(name: str, body: Callable[[Session], Dict[str, Any]]) -> Dict[str, Any]:
    ensure_schema(sync_engine)
    db = SessionLocal()
    try:
        logger.info("Job %s started", name)
        return body(db)
    except Exception as exc:
        db.rollback()
        logger.exception("Job %s failed", name)
        return {"ok": False, "error": str(exc)[:300]}
    finally:
        db.close()


def run_directory_sync() -> Dict[str, Any]:
    return _run_job("sync_gallery_directory", _sync_gallery_directory)


def run_gallery_info_crawl() -> Dict[str, Any]:
    return _run_job("crawl_gallery_info", _crawl_gallery_info)


def run_open_call_validation() -> Dict[str, Any]:
    return _run_job("validate_open_calls", validate_external_open_calls)


@celery_app.task(name="gallery_pipeline.workers.directory_tasks.sync_gallery_directory")
def sync_gallery_directory():
    """Canonicalize portal sources into the directory."""
    return run_directory_sync()


@celery_app.task(name="gallery_pipeline.workers.directory_tasks.crawl_gallery_info")
def crawl_gallery_info():
    """Fill missing instagram/founded year/space/email from gallery homepages."""
    return run_gallery_info_crawl()


@celery_app.task(name="gallery_pipeline.workers.directory_tasks.validate_open_calls")
def validate_open_calls():
    """Validate external open calls and prune invalid or expired ones."""
    return run_open_call_validation()
