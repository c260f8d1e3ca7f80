# caseintake/services/rate_limiter.py
"""
Hourly rate limiting per API key.

Counts live in ``api_rate_limits``, one row per key and hour-aligned window.
The increment is conditional (``request_count < limit``) so a window can
never count past its limit, and concurrent first requests that race on the
insert fall back to the same conditional update.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from caseintake.core.logger import logger
from caseintake.db.models import ApiKey, ApiRateLimit
from caseintake.utils.exceptions import DatabaseError, RateLimitExceeded, db_error_summary
from caseintake.utils.helpers import hour_window, utcnow


@dataclass(frozen=True)
class RateLimitDecision:
    limit: int
    remaining: int
    reset_at: datetime

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }


class SqlAlchemyRateLimitStore:
    """Window counters stored in the application database"""

    def __init__(self, db: Session):
        self.db = db

    def try_increment(
        self,
        api_key_id: int,
        window_start: datetime,
        window_end: datetime,
        limit: int,
    ) -> Optional[int]:
        """
        Count one request in the window. Returns the new count, or None when
        the window is already at ``limit``.
        """
        count = self._conditional_increment(api_key_id, window_start, limit)
        if count is not None:
            return count

        if self._window_exists(api_key_id, window_start):
            return None

        if limit <= 0:
            return None

        try:
            self.db.add(ApiRateLimit(
                api_key_id=api_key_id,
                window_start=window_start,
                window_end=window_end,
                request_count=1,
            ))
            self.db.commit()
            return 1
        except IntegrityError:
            # Another request created the window first
            self.db.rollback()
            logger.debug("Rate-limit window insert lost race for key %s", api_key_id)
            return self._conditional_increment(api_key_id, window_start, limit)

    def _conditional_increment(self, api_key_id: int, window_start: datetime, limit: int) -> Optional[int]:
        updated = (
            self.db.query(ApiRateLimit)
            .filter(
                ApiRateLimit.api_key_id == api_key_id,
                ApiRateLimit.window_start == window_start,
                ApiRateLimit.request_count < limit,
            )
            .update(
                {
                    ApiRateLimit.request_count: ApiRateLimit.request_count + 1,
                    ApiRateLimit.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if not updated:
            return None
        return (
            self.db.query(ApiRateLimit.request_count)
            .filter(
                ApiRateLimit.api_key_id == api_key_id,
                ApiRateLimit.window_start == window_start,
            )
            .scalar()
        )

    def _window_exists(self, api_key_id: int, window_start: datetime) -> bool:
        return (
            self.db.query(ApiRateLimit.id)
            .filter(
                ApiRateLimit.api_key_id == api_key_id,
                ApiRateLimit.window_start == window_start,
            )
            .first()
            is not None
        )


class RateLimiter:
    """
    Admits or rejects one request for a key. ``clock`` returns naive UTC and
    can be replaced in tests to move between windows.
    """

    def __init__(self, store: SqlAlchemyRateLimitStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def check(self, api_key: ApiKey) -> RateLimitDecision:
        limit = api_key.rate_limit_per_hour
        now = self.clock()
        window_start, window_end = hour_window(now)

        try:
            count = self.store.try_increment(api_key.id, window_start, window_end, limit)
        except SQLAlchemyError as exc:
            self.store.db.rollback()
            logger.exception("Rate-limit check failed for key %s", api_key.id)
            raise DatabaseError(f"Failed to check rate limit: {db_error_summary(exc)}") from exc

        if count is None:
            logger.warning("Rate limit exceeded for key %s (limit=%s)", api_key.id, limit)
            raise RateLimitExceeded(
                limit=limit,
                reset_at=window_end,
                retry_after=int((window_end - now).total_seconds()),
            )

        return RateLimitDecision(
            limit=limit,
            remaining=max(limit - count, 0),
            reset_at=window_end,
        )


def delete_expired_windows(db: Session, retention_hours: int, now: Optional[datetime] = None) -> int:
    """Sweep window rows that ended more than ``retention_hours`` ago"""
    cutoff = (now or utcnow()) - timedelta(hours=retention_hours)
    deleted = (
        db.query(ApiRateLimit)
        .filter(ApiRateLimit.window_end < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
