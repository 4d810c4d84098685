"""In-memory rate limit store.

Notes:
- Per-process only: running N workers or instances multiplies the effective
  limit by N.
- State is lost on restart; every counter starts from zero again.
- Thread-safe: sync route handlers run in a threadpool, so the record table
  is guarded by a lock.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from marketplace.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RouteLimitPolicy,
)

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Request count for one bucket and the epoch-ms instant its window ends."""

    count: int
    reset_time_ms: float


class InMemoryRateLimiter(AbstractRateLimiter):
    """Per-key request counter with a window anchored at the first request.

    A bucket opens on the first request it sees and stays open for
    ``policy.window_ms``. Requests beyond ``policy.max_requests`` inside that
    window are rejected; the first request after the window ends opens a new
    one with a count of 1.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty store.

        Args:
            clock: Time source returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, RateLimitRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def get_record(self, key: str) -> RateLimitRecord | None:
        """Return a copy of the stored record for ``key`` (expired or not)."""
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return RateLimitRecord(count=record.count, reset_time_ms=record.reset_time_ms)

    def consume(self, key: str, policy: RouteLimitPolicy) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now_ms = self._now_ms()

        with self._lock:
            record = self._records.get(key)

            if record is None or now_ms > record.reset_time_ms:
                record = RateLimitRecord(count=1, reset_time_ms=now_ms + policy.window_ms)
                self._records[key] = record
                return self._result(policy, record, allowed=True)

            if record.count < policy.max_requests:
                record.count += 1
                return self._result(policy, record, allowed=True)

            return self._result(policy, record, allowed=False)

    def sweep(self) -> int:
        """Delete every record whose window has ended."""
        now_ms = self._now_ms()
        with self._lock:
            expired = [k for k, r in self._records.items() if now_ms > r.reset_time_ms]
            for key in expired:
                del self._records[key]
            remaining = len(self._records)

        logger.debug(
            "rate_limit.sweep",
            extra={"removed": len(expired), "remaining": remaining},
        )
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    @staticmethod
    def _result(policy: RouteLimitPolicy, record: RateLimitRecord, *, allowed: bool) -> RateLimitResult:
        return RateLimitResult(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - record.count),
            reset_at=int(math.ceil(record.reset_time_ms / 1000)),
            retry_after_seconds=None if allowed else policy.retry_after_seconds,
        )
