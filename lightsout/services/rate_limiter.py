"""
Fixed-window rate limiter backed by the database.

Each (operation, origin) pair owns one counter row. The window starts at the
first attempt, so bursts of up to twice the limit are possible across a
window edge; that matches the league's historic behaviour.
"""

import logging
import math
import re
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from lightsout import db
from lightsout.exceptions import RateLimitError
from lightsout.models import RateLimitCounter

logger = logging.getLogger(__name__)


def _as_utc(value):
    # SQLite hands back naive datetimes; treat them as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sanitize_origin(origin):
    return re.sub(r"[^a-zA-Z0-9]", "_", origin or "unknown")


class RateLimiter:
    """Fixed-window attempt counter for one operation"""

    def __init__(self, operation, limit, window_seconds):
        self.operation = operation
        self.limit = limit
        self.window_seconds = window_seconds

    def __repr__(self):
        return f"<RateLimiter {self.operation} {self.limit}/{self.window_seconds}s>"

    @classmethod
    def for_operation(cls, operation):
        """Build the limiter configured in RATE_LIMITS for an operation"""
        limit, window = current_app.config["RATE_LIMITS"][operation]
        return cls(operation, limit, window)

    def key_for(self, origin):
        return f"{self.operation}_{sanitize_origin(origin)}"

    def hit(self, origin, now=None):
        """
        Record one attempt from ``origin``.

        Returns:
            Attempts used in the current window.

        Raises:
            RateLimitError: the limit is exhausted; carries retry_after seconds.
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        try:
            return self._hit(origin, now)
        except IntegrityError:
            # Two first attempts raced to create the counter; retry once
            db.session.rollback()
            return self._hit(origin, now)

    def _hit(self, origin, now):
        key = self.key_for(origin)
        counter = (
            RateLimitCounter.query.filter_by(key=key).with_for_update().first()
        )

        if counter is None or now > _as_utc(counter.reset_at):
            if counter is None:
                counter = RateLimitCounter(key=key, operation=self.operation)
                db.session.add(counter)
            counter.count = 1
            counter.reset_at = now + timedelta(seconds=self.window_seconds)
        elif counter.count < self.limit:
            counter.count += 1
        else:
            remaining = (_as_utc(counter.reset_at) - now).total_seconds()
            db.session.rollback()
            retry_after = max(1, math.ceil(remaining))
            logger.warning(
                f"Origin {origin} rate limited for operation {self.operation} "
                f"(retry in {retry_after}s)"
            )
            raise RateLimitError(retry_after, operation=self.operation)

        count = counter.count
        db.session.commit()
        return count

    def reset(self, origin):
        """Drop the counter for an origin (admin tooling and tests)"""
        RateLimitCounter.query.filter_by(key=self.key_for(origin)).delete()
        db.session.commit()


def check_rate_limit(operation, origin, now=None):
    """Shortcut: hit the configured limiter for ``operation``"""
    return RateLimiter.for_operation(operation).hit(origin, now=now)
