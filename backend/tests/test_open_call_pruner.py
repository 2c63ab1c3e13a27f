from datetime import datetime, timezone

import pytest

from gallery_pipeline.models.open_call import OpenCall, OpenCallValidation
from gallery_pipeline.services.open_call_pruner import (
    delete_external_open_calls,
    is_open_call_deadline_active,
    prune_open_calls,
)

NOW = datetime(2026, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "deadline,now,active",
    [
        ("2026-05-01", datetime(2026, 5, 1, 23, 59, 59, tzinfo=timezone.utc), True),
        ("2026-05-01", datetime(2026, 5, 2, 0, 0, 0, tzinfo=timezone.utc), False),
        ("2026-05-01", datetime(2026, 5, 1, 8, 0, 0), True),
        ("2020-01-01", NOW, False),
        ("2099-12-31", NOW, True),
        ("2026-5-1", NOW, False),
        ("2026-02-30", NOW, False),
        ("", NOW, False),
        (None, NOW, False),
    ],
)
def test_is_open_call_deadline_active(deadline, now, active):
    assert is_open_call_deadline_active(deadline, now) is active


def _listing(db, id, deadline="2099-12-31", is_external=True, status=None):
    db.add(OpenCall(id=id, gallery="Aurora Gallery", deadline=deadline, is_external=is_external))
    if status:
        db.add(OpenCallValidation(open_call_id=id, status=status, confidence=0))
    db.commit()


def test_prune_removes_expired_and_invalid_external_listings(db):
    _listing(db, "expired-verified", deadline="2020-01-01", status="verified")
    _listing(db, "invalid", status="invalid")
    _listing(db, "unreachable", status="unreachable")
    _listing(db, "unvalidated")
    _listing(db, "internal-expired", deadline="2020-01-01", is_external=False, status="invalid")
    _listing(db, "bad-deadline", deadline="soon")

    pruned = prune_open_calls(db, NOW)

    assert pruned == 3
    remaining = {row.id for row in db.query(OpenCall).all()}
    assert remaining == {"unreachable", "unvalidated", "internal-expired"}
    # validation rows are kept, only listings go
    assert db.query(OpenCallValidation).filter_by(open_call_id="invalid").count() == 1


def test_prune_with_nothing_to_do(db):
    _listing(db, "fine", status="verified")
    assert prune_open_calls(db, NOW) == 0


def test_delete_never_touches_internal_listings(db):
    _listing(db, "internal", is_external=False)
    _listing(db, "external")

    assert delete_external_open_calls(db, ["internal", "external", "missing"]) == 1
    assert {row.id for row in db.query(OpenCall).all()} == {"internal"}
