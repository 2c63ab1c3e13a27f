"""Gallery info crawler: fills missing directory facts from gallery homepages."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gallery_pipeline.config import Settings, get_settings
from gallery_pipeline.models.directory import ExternalGalleryDirectory, GalleryInfoCrawlRun
from gallery_pipeline.services.enrichment.extractors import (
    extract_email,
    extract_founded_year,
    extract_instagram,
    extract_space_size,
)
from gallery_pipeline.services.text_normalizer import website_url

logger = logging.getLogger(__name__)

ENRICHED_FIELDS = ("instagram", "founded_year", "space_size", "external_email")


@dataclass
class EnrichmentTarget:
    gallery_id: str
    website: str
    instagram: Optional[str] = None
    founded_year: Optional[int] = None
    space_size: Optional[str] = None
    external_email: Optional[str] = None


@dataclass
class EnrichmentOutcome:
    gallery_id: str
    status: str  # updated, unchanged, fetch_failed, error
    values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class EnrichmentBatchCache:
    """Pages fetched during one crawl run, keyed by URL. Never outlives the run."""

    def __init__(self) -> None:
        self._pages: Dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(url: str) -> str:
        return url.strip().rstrip("/").lower()

    def get(self, url: str) -> Optional[str]:
        with self._lock:
            return self._pages.get(self._key(url))

    def put(self, url: str, html: str) -> None:
        with self._lock:
            self._pages[self._key(url)] = html

    def __len__(self) -> int:
        return len(self._pages)


def extract_missing(target: EnrichmentTarget, html: str) -> Dict[str, Any]:
    """Existing values win; extractors only run for the fields still empty."""
    return {
        "instagram": target.instagram or extract_instagram(html),
        "founded_year": target.founded_year if target.founded_year is not None else extract_founded_year(html),
        "space_size": target.space_size or extract_space_size(html),
        "external_email": target.external_email or extract_email(html),
    }


class GalleryInfoCrawler:
    """
    Visits directory galleries that have a website but lack instagram or
    founded year, and writes back whatever the homepage reveals.

    Fetch failures are counted as skipped and never abort the batch.
    """

    def __init__(
        self,
        session: Session,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
        now: Callable[[], datetime] = datetime.utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.client = client
        self.settings = settings or get_settings()
        self.now = now
        self.sleep = sleep
        self._http: Optional[httpx.Client] = None

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.settings.enrichment_fetch_timeout_seconds,
            follow_redirects=True,
            headers={
                "User-Agent": self.settings.enrichment_user_agent,
                "Accept": "text/html,*/*;q=0.8",
            },
        )

    # ------------------------------------------------------------------
    # selection

    def _eligibility(self, now: datetime):
        model = ExternalGalleryDirectory
        threshold = self.settings.enrichment_fail_threshold
        recent = now - timedelta(hours=self.settings.enrichment_retry_after_hours)
        failing = now - timedelta(hours=self.settings.enrichment_retry_after_hours_failing)
        return or_(
            model.crawl_fail_count.is_(None),
            model.crawl_fail_count == 0,
            and_(
                model.crawl_fail_count < threshold,
                or_(model.last_crawled_at.is_(None), model.last_crawled_at < recent),
            ),
            and_(
                model.crawl_fail_count >= threshold,
                or_(model.last_crawled_at.is_(None), model.last_crawled_at < failing),
            ),
        )

    def select_targets(self) -> List[EnrichmentTarget]:
        model = ExternalGalleryDirectory
        rows = self.session.execute(
            select(model)
            .where(
                model.website.is_not(None),
                model.website != "",
                or_(model.instagram.is_(None), model.founded_year.is_(None)),
                self._eligibility(self.now()),
            )
            .order_by(model.quality_score.desc(), model.updated_at.asc())
            .limit(self.settings.enrichment_batch_limit)
        ).scalars().all()
        return [
            EnrichmentTarget(
                gallery_id=row.gallery_id,
                website=website_url(row.website),
                instagram=row.instagram,
                founded_year=row.founded_year,
                space_size=row.space_size,
                external_email=row.external_email,
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # fetching

    def fetch_text(self, url: str) -> str:
        client = self._http or self.client
        try:
            response = client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Fetch failed for %s: %s", url, exc)
            return ""
        if not response.is_success:
            return ""
        return response.text or ""

    def fetch_with_retry(self, url: str, cache: EnrichmentBatchCache) -> str:
        cached = cache.get(url)
        if cached is not None:
            return cached
        html = self.fetch_text(url)
        if not html:
            self.sleep(self.settings.enrichment_retry_delay_seconds)
            html = self.fetch_text(url)
        cache.put(url, html)
        return html

    def enrich_target(self, target: EnrichmentTarget, cache: EnrichmentBatchCache) -> EnrichmentOutcome:
        """Fetch + extract for one gallery. Touches no database state."""
        try:
            html = self.fetch_with_retry(target.website, cache)
            if not html:
                return EnrichmentOutcome(gallery_id=target.gallery_id, status="fetch_failed", error="fetch_empty")
            values = extract_missing(target, html)
            changed = any(values[name] != getattr(target, name) for name in ENRICHED_FIELDS)
            return EnrichmentOutcome(
                gallery_id=target.gallery_id,
                status="updated" if changed else "unchanged",
                values=values,
            )
        except Exception as exc:
            logger.warning("Enrichment failed for %s: %s", target.gallery_id, exc)
            return EnrichmentOutcome(
                gallery_id=target.gallery_id,
                status="error",
                error=str(exc or "unknown")[:300],
            )

    def _crawl(self, targets: List[EnrichmentTarget], cache: EnrichmentBatchCache) -> Iterator[EnrichmentOutcome]:
        workers = max(1, int(self.settings.enrichment_concurrency))
        if workers == 1 or len(targets) <= 1:
            for target in targets:
                yield self.enrich_target(target, cache)
            return
        with ThreadPoolExecutor(max_workers=workers) as pool:
            yield from pool.map(lambda t: self.enrich_target(t, cache), targets)

    # ------------------------------------------------------------------
    # write-back

    def _apply(self, outcome: EnrichmentOutcome, counters: Dict[str, int]) -> None:
        model = ExternalGalleryDirectory
        now = self.now()
        where = model.gallery_id == outcome.gallery_id
        fail_count = func.coalesce(model.crawl_fail_count, 0)

        if outcome.status == "updated":
            values = {
                name: func.coalesce(getattr(model, name), outcome.values.get(name))
                for name in ENRICHED_FIELDS
            }
            values.update(
                updated_at=now,
                last_crawled_at=now,
                crawl_fail_count=0,
                crawl_last_error=None,
                crawl_last_error_at=None,
            )
            self.session.execute(update(model).where(where).values(**values))
            counters["updated"] += 1
        elif outcome.status == "unchanged":
            self.session.execute(
                update(model).where(where).values(last_crawled_at=now, crawl_fail_count=0)
            )
            counters["skipped"] += 1
        else:
            self.session.execute(
                update(model)
                .where(where)
                .values(
                    last_crawled_at=now,
                    crawl_fail_count=fail_count + 1,
                    crawl_last_error=outcome.error,
                    crawl_last_error_at=now,
                )
            )
            counters["skipped" if outcome.status == "fetch_failed" else "errors"] += 1
        self.session.commit()

    # ------------------------------------------------------------------
    # run

    def _already_running(self) -> bool:
        cutoff = self.now() - timedelta(minutes=self.settings.crawl_run_stale_minutes)
        running = self.session.execute(
            select(GalleryInfoCrawlRun.id)
            .where(GalleryInfoCrawlRun.status == "running", GalleryInfoCrawlRun.started_at > cutoff)
            .limit(1)
        ).first()
        return running is not None

    def _finish(self, run: GalleryInfoCrawlRun, status: str, counters: Dict[str, int], started: float, error: Optional[str]):
        run.status = status
        run.finished_at = self.now()
        run.processed = counters["processed"]
        run.updated = counters["updated"]
        run.skipped = counters["skipped"]
        run.errors = counters["errors"]
        run.duration_ms = int((time.monotonic() - started) * 1000)
        run.error_sample = error
        self.session.commit()

    def run(self) -> Dict[str, Any]:
        if self._already_running():
            logger.info("Gallery info crawl skipped: another run is in progress")
            return {"ok": True, "skipped": True, "reason": "already_running"}

        run = GalleryInfoCrawlRun(status="running", started_at=self.now())
        self.session.add(run)
        self.session.commit()

        counters = {"processed": 0, "updated": 0, "skipped": 0, "errors": 0}
        started = time.monotonic()
        try:
            targets = self.select_targets()
            counters["processed"] = len(targets)
            logger.info("Gallery info crawl run %s: %d galleries selected", run.id, len(targets))

            cache = EnrichmentBatchCache()
            http_context = nullcontext(self.client) if self.client is not None else self._build_client()
            with http_context as client:
                self._http = client
                try:
                    for outcome in self._crawl(targets, cache):
                        try:
                            self._apply(outcome, counters)
                        except SQLAlchemyError as exc:
                            self.session.rollback()
                            counters["errors"] += 1
                            logger.warning("Write-back failed for %s: %s", outcome.gallery_id, exc)
                finally:
                    self._http = None

            self._finish(run, "success", counters, started, None)
            logger.info("Gallery info crawl run %s finished: %s", run.id, counters)
            return {"ok": True, "run_id": run.id, **counters}
        except Exception as exc:
            self.session.rollback()
            counters["errors"] += 1
            sample = str(exc or "unknown")[:300]
            logger.exception("Gallery info crawl run %s failed", run.id)
            self._finish(run, "error", counters, started, sample)
            return {"ok": False, "run_id": run.id, "error": sample, **counters}


def crawl_gallery_info(session: Session, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    return GalleryInfoCrawler(session, client=client).run()
