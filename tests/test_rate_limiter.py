"""Tests for the hourly rate limiter."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from caseintake.db.models import ApiRateLimit
from caseintake.services.rate_limiter import (
    RateLimiter,
    SqlAlchemyRateLimitStore,
    delete_expired_windows,
)
from caseintake.utils.exceptions import DatabaseError, RateLimitExceeded


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def limited_key(issue_key):
    key, _ = issue_key(limit=3)
    return key


def test_counts_down_within_window(db, limited_key):
    limiter = RateLimiter(SqlAlchemyRateLimitStore(db), clock=FakeClock(datetime(2024, 6, 1, 9, 59)))

    decisions = [limiter.check(limited_key) for _ in range(3)]

    assert [d.remaining for d in decisions] == [2, 1, 0]
    assert decisions[0].reset_at == datetime(2024, 6, 1, 10, 0)
    assert decisions[0].headers()["X-RateLimit-Limit"] == "3"


def test_rejected_requests_are_not_counted(db, limited_key):
    limiter = RateLimiter(SqlAlchemyRateLimitStore(db), clock=FakeClock(datetime(2024, 6, 1, 10, 30)))
    for _ in range(3):
        limiter.check(limited_key)

    for _ in range(2):
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check(limited_key)

    assert exc_info.value.http_status == 429
    assert exc_info.value.headers["Retry-After"] == "1800"
    window = db.query(ApiRateLimit).one()
    assert window.request_count == 3
    assert window.window_start == datetime(2024, 6, 1, 10, 0)
    assert window.window_end == datetime(2024, 6, 1, 11, 0)


def test_new_hour_opens_new_window(db, limited_key):
    clock = FakeClock(datetime(2024, 6, 1, 10, 30))
    limiter = RateLimiter(SqlAlchemyRateLimitStore(db), clock=clock)
    for _ in range(3):
        limiter.check(limited_key)

    clock.now = datetime(2024, 6, 1, 11, 0)
    decision = limiter.check(limited_key)

    assert decision.remaining == 2
    assert db.query(ApiRateLimit).count() == 2


def test_lost_insert_race_falls_back_to_update(db, limited_key):
    window_start = datetime(2024, 6, 1, 10, 0)
    store = SqlAlchemyRateLimitStore(db)
    # Another request created the window between our update and insert
    db.add(ApiRateLimit(
        api_key_id=limited_key.id,
        window_start=window_start,
        window_end=datetime(2024, 6, 1, 11, 0),
        request_count=1,
    ))
    db.commit()
    real_increment = store._conditional_increment
    calls = []

    def miss_first(*args):
        calls.append(args)
        return None if len(calls) == 1 else real_increment(*args)

    store._conditional_increment = miss_first
    store._window_exists = lambda *args: False

    count = store.try_increment(limited_key.id, window_start, datetime(2024, 6, 1, 11, 0), 3)

    assert count == 2
    assert db.query(ApiRateLimit).one().request_count == 2


def test_storage_failure_fails_closed(db, limited_key):
    class BrokenStore(SqlAlchemyRateLimitStore):
        def try_increment(self, *args):
            raise OperationalError("UPDATE api_rate_limits", {}, Exception("database is locked"))

    limiter = RateLimiter(BrokenStore(db))

    with pytest.raises(DatabaseError):
        limiter.check(limited_key)


def test_delete_expired_windows(db, limited_key):
    db.add_all([
        ApiRateLimit(api_key_id=limited_key.id, window_start=datetime(2024, 5, 1, 9),
                     window_end=datetime(2024, 5, 1, 10), request_count=1),
        ApiRateLimit(api_key_id=limited_key.id, window_start=datetime(2024, 6, 1, 9),
                     window_end=datetime(2024, 6, 1, 10), request_count=1),
    ])
    db.commit()

    deleted = delete_expired_windows(db, retention_hours=168, now=datetime(2024, 6, 1, 12))

    assert deleted == 1
    assert db.query(ApiRateLimit).one().window_start == datetime(2024, 6, 1, 9)
