"""Removes external open calls that failed validation or are past their deadline.

Only rows with ``is_external`` set are ever deleted; listings created by
galleries through the product are never touched here.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from gallery_pipeline.models.open_call import OpenCall, OpenCallValidation, ValidationStatus

logger = logging.getLogger(__name__)

_DEADLINE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DELETE_CHUNK = 500


def is_open_call_deadline_active(deadline: Optional[str], now: Optional[datetime] = None) -> bool:
    """True while the end of the deadline day (UTC) has not passed. Malformed deadlines are inactive."""
    value = str(deadline or "").strip()
    if not _DEADLINE.match(value):
        return False
    try:
        end_of_day = datetime.strptime(f"{value}T23:59:59", "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return False
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return end_of_day >= current


def prunable_open_call_ids(session: Session, now: Optional[datetime] = None) -> Set[str]:
    invalid_ids = session.execute(
        select(OpenCall.id)
        .join(OpenCallValidation, OpenCallValidation.open_call_id == OpenCall.id)
        .where(
            OpenCall.is_external.is_(True),
            OpenCallValidation.status == ValidationStatus.invalid.value,
        )
    ).scalars().all()
    external = session.execute(
        select(OpenCall.id, OpenCall.deadline).where(OpenCall.is_external.is_(True))
    ).all()
    expired_ids = [row.id for row in external if not is_open_call_deadline_active(row.deadline, now)]
    return set(invalid_ids) | set(expired_ids)


def delete_external_open_calls(session: Session, ids: Iterable[str]) -> int:
    pending = sorted(set(ids))
    pruned = 0
    for start in range(0, len(pending), _DELETE_CHUNK):
        chunk = pending[start:start + _DELETE_CHUNK]
        result = session.execute(
            delete(OpenCall)
            .where(OpenCall.id.in_(chunk), OpenCall.is_external.is_(True))
            .execution_options(synchronize_session=False)
        )
        pruned += int(result.rowcount or 0)
    session.commit()
    return pruned


def prune_open_calls(session: Session, now: Optional[datetime] = None) -> int:
    ids = prunable_open_call_ids(session, now)
    if not ids:
        return 0
    pruned = delete_external_open_calls(session, ids)
    logger.info("Pruned %d external open calls", pruned)
    return pruned
