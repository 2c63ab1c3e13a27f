from collections import Counter
from datetime import datetime, timedelta

import httpx
import pytest

from gallery_pipeline.config import Settings
from gallery_pipeline.models.directory import ExternalGalleryDirectory, GalleryInfoCrawlRun
from gallery_pipeline.services.enrichment import crawler as crawler_module
from gallery_pipeline.services.enrichment import EnrichmentBatchCache, GalleryInfoCrawler

NOW = datetime(2026, 5, 1, 12, 0, 0)

PAGES = {
    "a.example": (
        '<html><body><a href="https://www.instagram.com/alpha_gallery/">IG</a>'
        "<p>Founded in 1998. Gallery space of 300 m².</p>"
        "<p>info@a.example</p></body></html>"
    ),
    "plain.example": "<html><body><p>Welcome</p></body></html>",
    "since.example": '<html><body><p>Since 2005</p><a href="https://instagram.com/since_gallery/">ig</a></body></html>',
}


class FakeSite:
    def __init__(self, pages=None):
        self.pages = dict(PAGES if pages is None else pages)
        self.requests = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.requests[host] += 1
        if host == "down.example":
            raise httpx.ConnectError("connection refused", request=request)
        if host in self.pages:
            return httpx.Response(200, text=self.pages[host])
        return httpx.Response(500, text="boom")


def _gallery(db, gallery_id, website, **values):
    row = ExternalGalleryDirectory(
        gallery_id=gallery_id,
        name=gallery_id.title(),
        country="한국",
        city="Seoul",
        website=website,
        quality_score=values.pop("quality_score", 70),
        **values,
    )
    db.add(row)
    db.commit()
    return row


def _crawler(db, site, **settings):
    options = {"enrichment_retry_delay_seconds": 0, "enrichment_concurrency": 1}
    options.update(settings)
    client = httpx.Client(transport=httpx.MockTransport(site))
    sleeps = []
    crawler = GalleryInfoCrawler(
        db,
        client=client,
        settings=Settings(**options),
        now=lambda: NOW,
        sleep=sleeps.append,
    )
    return crawler, sleeps


def test_run_fills_missing_fields_and_counts_outcomes(db):
    site = FakeSite()
    _gallery(db, "alpha", "https://a.example")
    _gallery(db, "broken", "https://broken.example")
    _gallery(db, "plain", "https://plain.example")
    _gallery(db, "complete", "https://a.example", instagram="https://www.instagram.com/x/", founded_year=2000)
    _gallery(db, "offline", None)

    crawler, sleeps = _crawler(db, site)
    result = crawler.run()

    assert result["ok"] is True
    assert result["processed"] == 3
    assert result["updated"] == 1
    assert result["skipped"] == 2
    assert result["errors"] == 0
    assert sleeps == [0]
    assert site.requests["broken.example"] == 2

    db.expire_all()
    alpha = db.get(ExternalGalleryDirectory, "alpha")
    assert alpha.instagram == "https://www.instagram.com/alpha_gallery/"
    assert alpha.founded_year == 1998
    assert alpha.space_size == "Gallery space of 300 m²"
    assert alpha.external_email == "info@a.example"
    assert alpha.last_crawled_at == NOW
    assert alpha.crawl_fail_count == 0

    broken = db.get(ExternalGalleryDirectory, "broken")
    assert broken.instagram is None
    assert broken.crawl_fail_count == 1
    assert broken.crawl_last_error == "fetch_empty"
    assert broken.crawl_last_error_at == NOW

    plain = db.get(ExternalGalleryDirectory, "plain")
    assert plain.instagram is None
    assert plain.last_crawled_at == NOW

    run = db.get(GalleryInfoCrawlRun, result["run_id"])
    assert run.status == "success"
    assert (run.processed, run.updated, run.skipped, run.errors) == (3, 1, 2, 0)
    assert run.finished_at == NOW


def test_existing_values_are_never_overwritten(db):
    site = FakeSite()
    _gallery(db, "since", "https://since.example", founded_year=1990)

    crawler, _ = _crawler(db, site)
    result = crawler.run()

    assert result["updated"] == 1
    db.expire_all()
    row = db.get(ExternalGalleryDirectory, "since")
    assert row.founded_year == 1990
    assert row.instagram == "https://www.instagram.com/since_gallery/"


def test_network_errors_are_retried_once_and_recorded(db):
    site = FakeSite()
    _gallery(db, "down", "https://down.example")

    crawler, sleeps = _crawler(db, site)
    result = crawler.run()

    assert result["ok"] is True
    assert result["skipped"] == 1
    assert site.requests["down.example"] == 2
    assert sleeps == [0]


def test_shared_website_is_fetched_once_per_run(db):
    site = FakeSite()
    _gallery(db, "alpha", "https://a.example")
    _gallery(db, "alpha_branch", "https://A.example/")

    crawler, _ = _crawler(db, site)
    result = crawler.run()

    assert result["updated"] == 2
    assert site.requests["a.example"] == 1


def test_batch_cache_normalizes_urls():
    cache = EnrichmentBatchCache()
    cache.put("https://Example.com/ ", "<html></html>")

    assert cache.get("https://example.com") == "<html></html>"
    assert cache.get("https://other.example") is None
    assert len(cache) == 1


def test_failing_galleries_back_off(db):
    _gallery(db, "fresh", "https://a.example")
    _gallery(db, "recent_fail", "https://a.example", crawl_fail_count=1, last_crawled_at=NOW - timedelta(hours=2))
    _gallery(db, "old_fail", "https://a.example", crawl_fail_count=2, last_crawled_at=NOW - timedelta(hours=7))
    _gallery(db, "chronic_recent", "https://a.example", crawl_fail_count=3, last_crawled_at=NOW - timedelta(hours=12))
    _gallery(db, "chronic_old", "https://a.example", crawl_fail_count=5, last_crawled_at=NOW - timedelta(hours=30))

    crawler, _ = _crawler(db, FakeSite())
    selected = {target.gallery_id for target in crawler.select_targets()}

    assert selected == {"fresh", "old_fail", "chronic_old"}


def test_selection_prefers_quality_and_respects_limit(db):
    _gallery(db, "low", "https://a.example", quality_score=40)
    _gallery(db, "high", "https://a.example", quality_score=95)
    _gallery(db, "mid", "https://a.example", quality_score=70)

    crawler, _ = _crawler(db, FakeSite(), enrichment_batch_limit=2)
    assert [target.gallery_id for target in crawler.select_targets()] == ["high", "mid"]


def test_overlapping_run_is_skipped(db):
    db.add(GalleryInfoCrawlRun(status="running", started_at=NOW - timedelta(minutes=5)))
    db.commit()
    _gallery(db, "alpha", "https://a.example")

    site = FakeSite()
    crawler, _ = _crawler(db, site)
    result = crawler.run()

    assert result == {"ok": True, "skipped": True, "reason": "already_running"}
    assert sum(site.requests.values()) == 0


def test_stale_running_marker_does_not_block(db):
    db.add(GalleryInfoCrawlRun(status="running", started_at=NOW - timedelta(hours=3)))
    db.commit()
    _gallery(db, "alpha", "https://a.example")

    crawler, _ = _crawler(db, FakeSite())
    assert crawler.run()["updated"] == 1


def test_extraction_errors_are_counted_per_gallery(db, monkeypatch):
    def explode(html):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(crawler_module, "extract_instagram", explode)
    _gallery(db, "alpha", "https://a.example")

    crawler, _ = _crawler(db, FakeSite())
    result = crawler.run()

    assert result["ok"] is True
    assert result["errors"] == 1
    db.expire_all()
    row = db.get(ExternalGalleryDirectory, "alpha")
    assert row.crawl_fail_count == 1
    assert row.crawl_last_error == "parser exploded"


@pytest.mark.parametrize("concurrency", [1, 4])
def test_concurrent_fetches_give_same_result(db, concurrency):
    pages = {f"g{i}.example": f'<a href="https://instagram.com/gallery_{i}/">ig</a>' for i in range(5)}
    site = FakeSite(pages)
    for i in range(5):
        _gallery(db, f"g{i}", f"https://g{i}.example")

    crawler, _ = _crawler(db, site, enrichment_concurrency=concurrency)
    result = crawler.run()

    assert (result["processed"], result["updated"], result["errors"]) == (5, 5, 0)
    db.expire_all()
    assert db.get(ExternalGalleryDirectory, "g3").instagram == "https://www.instagram.com/gallery_3/"


def test_website_without_scheme_is_fetched_over_https(db):
    site = FakeSite({"kukjegallery.com": '<a href="https://www.instagram.com/kukjegallery/">IG</a>'})
    _gallery(db, "kukje", "kukjegallery.com")

    crawler, _ = _crawler(db, site)
    result = crawler.run()

    assert (result["updated"], result["errors"]) == (1, 0)
    assert site.requests["kukjegallery.com"] == 1
    db.expire_all()
    row = db.get(ExternalGalleryDirectory, "kukje")
    assert row.instagram == "https://www.instagram.com/kukjegallery/"
    assert row.crawl_fail_count == 0
    assert row.website == "kukjegallery.com"
