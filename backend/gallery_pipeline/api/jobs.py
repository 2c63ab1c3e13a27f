"""Job triggers for an external scheduler. Each call runs the job and returns its summary."""
import hmac

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.concurrency import run_in_threadpool
from typing import Optional

from gallery_pipeline.config import get_settings
from gallery_pipeline.workers.directory_tasks import (
    run_directory_sync,
    run_gallery_info_crawl,
    run_open_call_validation,
)


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    expected = get_settings().cron_secret
    if not expected:
        return
    if not hmac.compare_digest(authorization or "", f"Bearer {expected}"):
        raise HTTPException(status_code=401, detail="unauthorized")


router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post("/sync-gallery-directory")
async def sync_gallery_directory_job():
    return await run_in_threadpool(run_directory_sync)


@router.post("/crawl-gallery-info")
async def crawl_gallery_info_job():
    return await run_in_threadpool(run_gallery_info_crawl)


@router.post("/validate-open-calls")
async def validate_open_calls_job():
    return await run_in_threadpool(run_open_call_validation)
