from celery import Celery
from celery.schedules import crontab

from gallery_pipeline.config import get_settings

settings = get_settings()

celery_app = Celery(
    "gallery_pipeline",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["gallery_pipeline.workers.directory_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    task_soft_time_limit=540,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "gallery_pipeline.workers.directory_tasks.sync_gallery_directory": {"queue": "directory.sync"},
        "gallery_pipeline.workers.directory_tasks.crawl_gallery_info": {"queue": "directory.crawl"},
        "gallery_pipeline.workers.directory_tasks.validate_open_calls": {"queue": "open_calls.validate"},
    },
    beat_schedule={
        "sync-gallery-directory-daily": {
            "task": "gallery_pipeline.workers.directory_tasks.sync_gallery_directory",
            "schedule": crontab(hour=3, minute=0),
        },
        "crawl-gallery-info-hourly": {
            "task": "gallery_pipeline.workers.directory_tasks.crawl_gallery_info",
            "schedule": crontab(minute=15),
        },
        "validate-open-calls": {
            "task": "gallery_pipeline.workers.directory_tasks.validate_open_calls",
            "schedule": crontab(hour="*/6", minute=30),
        },
    },
)
