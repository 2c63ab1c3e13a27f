"""Checks that externally sourced open calls point at a page that really describes them.

Each external listing's URL is fetched and scored on two signals: whether the
final host is the declared one, and whether the page text is relevant (open
call vocabulary, or the listing's own theme/gallery words). A network failure
is recorded as ``unreachable`` and never as ``invalid``.
"""
from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from gallery_pipeline.config import Settings, get_settings
from gallery_pipeline.models.base import dialect_insert
from gallery_pipeline.models.open_call import OpenCall, OpenCallValidation, ValidationStatus
from gallery_pipeline.services.open_call_pruner import prune_open_calls
from gallery_pipeline.services.text_normalizer import (
    host_from_url,
    html_to_text,
    is_http_url,
    normalize_page_text,
)

logger = logging.getLogger(__name__)

OPEN_CALL_KEYWORDS = [
    "open call",
    "call for artists",
    "residency",
    "submission",
    "apply",
    "application",
    "공모",
    "오픈콜",
    "레지던시",
    "지원",
]

HOST_MATCH_WEIGHT = 25
KEYWORD_WEIGHT = 45
STRONG_TOKEN_WEIGHT = 30
WEAK_TOKEN_WEIGHT = 15

MIN_TOKEN_LENGTH = 4
MAX_TOKENS = 10

OVERWRITTEN_FIELDS = ("status", "reason", "checked_url", "http_status", "confidence", "checked_at", "updated_at")


@dataclass
class FetchedPage:
    ok: bool
    status: int  # 0 when no HTTP response was received
    final_url: str
    text: str = ""


@dataclass
class ValidationResult:
    open_call_id: str
    status: str
    reason: Optional[str]
    checked_url: Optional[str]
    http_status: Optional[int]
    confidence: int
    checked_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["checked_at"] = self.checked_at.isoformat()
        return payload


def url_candidate(call: OpenCall) -> str:
    url = str(call.external_url or call.gallery_website or "").strip()
    return url if is_http_url(url) else ""


def theme_tokens(text: str) -> List[str]:
    words = [w for w in normalize_page_text(text).split(" ") if len(w) >= MIN_TOKEN_LENGTH][:MAX_TOKENS]
    return list(dict.fromkeys(words))


def evaluate_content(call: OpenCall, text: str, final_url: str) -> Tuple[str, str, int]:
    """Return ``(status, reason, confidence)`` for a successfully fetched page."""
    expected_host = host_from_url(call.external_url or call.gallery_website)
    host_match = bool(expected_host) and expected_host == host_from_url(final_url)
    has_keyword = any(normalize_page_text(k) in text for k in OPEN_CALL_KEYWORDS)
    token_hits = sum(1 for token in theme_tokens(f"{call.theme or ''} {call.gallery or ''}") if token in text)

    confidence = 0
    if host_match:
        confidence += HOST_MATCH_WEIGHT
    if has_keyword:
        confidence += KEYWORD_WEIGHT
    if token_hits >= 2:
        confidence += STRONG_TOKEN_WEIGHT
    elif token_hits == 1:
        confidence += WEAK_TOKEN_WEIGHT

    if has_keyword or token_hits >= 2:
        return ValidationStatus.verified.value, "content_matched", confidence
    if token_hits == 1 or host_match:
        return ValidationStatus.suspicious.value, "partial_match", confidence
    return ValidationStatus.invalid.value, "content_not_relevant", confidence


def should_hide_open_call(validation: Optional[Any]) -> bool:
    """Hide only listings whose URL is known bad. No verdict means show."""
    if validation is None:
        return False
    if isinstance(validation, Mapping):
        status, reason = validation.get("status"), validation.get("reason")
    else:
        status, reason = getattr(validation, "status", None), getattr(validation, "reason", None)
    if str(status or "").lower() != ValidationStatus.invalid.value:
        return False
    reason = str(reason or "").lower()
    return reason == "missing_or_invalid_url" or reason.startswith("http_")


class OpenCallValidator:
    """Validates every external open call, stores the verdicts, then prunes."""

    def __init__(
        self,
        session: Session,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.client = client
        self.settings = settings or get_settings()
        self.now = now
        self._http: Optional[httpx.Client] = None

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.settings.validation_fetch_timeout_seconds,
            follow_redirects=True,
            headers={
                "User-Agent": self.settings.validation_user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )

    def fetch_page(self, url: str) -> FetchedPage:
        client = self._http or self.client
        try:
            response = client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.info("Open call fetch failed for %s: %s", url, exc.__class__.__name__)
            return FetchedPage(ok=False, status=0, final_url=url)
        final_url = str(response.url or url)
        if not response.is_success:
            return FetchedPage(ok=False, status=response.status_code, final_url=final_url)
        return FetchedPage(
            ok=True,
            status=response.status_code,
            final_url=final_url,
            text=normalize_page_text(html_to_text(response.text)),
        )

    def validate_one(self, call: OpenCall) -> ValidationResult:
        checked_at = self.now()
        url = url_candidate(call)
        if not url:
            return ValidationResult(
                open_call_id=call.id,
                status=ValidationStatus.invalid.value,
                reason="missing_or_invalid_url",
                checked_url=None,
                http_status=None,
                confidence=0,
                checked_at=checked_at,
            )

        page = self.fetch_page(url)
        if not page.ok:
            if page.status:
                return ValidationResult(
                    open_call_id=call.id,
                    status=ValidationStatus.invalid.value,
                    reason=f"http_{page.status}",
                    checked_url=page.final_url,
                    http_status=page.status,
                    confidence=0,
                    checked_at=checked_at,
                )
            return ValidationResult(
                open_call_id=call.id,
                status=ValidationStatus.unreachable.value,
                reason="network_error_or_timeout",
                checked_url=page.final_url,
                http_status=None,
                confidence=0,
                checked_at=checked_at,
            )

        status, reason, confidence = evaluate_content(call, page.text, page.final_url)
        return ValidationResult(
            open_call_id=call.id,
            status=status,
            reason=reason,
            checked_url=page.final_url,
            http_status=page.status,
            confidence=confidence,
            checked_at=checked_at,
        )

    def _safe_validate(self, call: OpenCall) -> ValidationResult:
        try:
            return self.validate_one(call)
        except Exception as exc:
            logger.warning("Validation crashed for open call %s: %s", call.id, exc)
            return ValidationResult(
                open_call_id=call.id,
                status=ValidationStatus.unreachable.value,
                reason="validation_error",
                checked_url=url_candidate(call) or None,
                http_status=None,
                confidence=0,
                checked_at=self.now(),
            )

    def upsert_validations(self, results: Iterable[ValidationResult]) -> None:
        rows = [
            {
                "open_call_id": r.open_call_id,
                "status": r.status,
                "reason": r.reason,
                "checked_url": r.checked_url,
                "http_status": r.http_status,
                "confidence": r.confidence,
                "checked_at": r.checked_at,
                "updated_at": self.now(),
            }
            for r in results
        ]
        if not rows:
            return
        insert = dialect_insert(self.session)
        table = OpenCallValidation.__table__
        chunk_size = max(1, self.settings.directory_upsert_chunk_size)
        for start in range(0, len(rows), chunk_size):
            stmt = insert(table).values(rows[start:start + chunk_size])
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.open_call_id],
                set_={name: stmt.excluded[name] for name in OVERWRITTEN_FIELDS},
            )
            self.session.execute(stmt)
        self.session.commit()

    def run(self) -> Dict[str, int]:
        calls = self.session.execute(
            select(OpenCall).where(OpenCall.is_external.is_(True)).order_by(OpenCall.id)
        ).scalars().all()
        logger.info("Validating %d external open calls", len(calls))

        results: List[ValidationResult] = []
        http_context = nullcontext(self.client) if self.client is not None else self._build_client()
        with http_context as client:
            self._http = client
            try:
                for call in calls:
                    results.append(self._safe_validate(call))
            finally:
                self._http = None

        self.upsert_validations(results)
        pruned = prune_open_calls(self.session, self.now())

        counts = {"total": len(results)}
        for status in ValidationStatus:
            counts[status.value] = sum(1 for r in results if r.status == status.value)
        counts["pruned"] = pruned
        logger.info("Open call validation finished: %s", counts)
        return counts


def validate_external_open_calls(session: Session, client: Optional[httpx.Client] = None) -> Dict[str, int]:
    return OpenCallValidator(session, client=client).run()


def get_validation_map(session: Session, open_call_ids: Iterable[str]) -> Dict[str, ValidationResult]:
    ids = [str(i) for i in dict.fromkeys(open_call_ids) if str(i or "").strip()]
    if not ids:
        return {}
    rows = session.execute(
        select(OpenCallValidation).where(OpenCallValidation.open_call_id.in_(ids))
    ).scalars().all()
    return {
        row.open_call_id: ValidationResult(
            open_call_id=row.open_call_id,
            status=row.status,
            reason=row.reason,
            checked_url=row.checked_url,
            http_status=row.http_status,
            confidence=int(row.confidence or 0),
            checked_at=row.checked_at,
        )
        for row in rows
    }
