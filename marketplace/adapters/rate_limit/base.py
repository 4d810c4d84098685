"""Rate limiter interfaces.

The edge filter depends on this abstraction rather than on the in-memory
store, so a shared counter store (e.g. Redis with atomic increment-and-expire)
can be dropped in for multi-instance deployments.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RouteLimitPolicy:
    """Request budget for a family of endpoints.

    Attributes:
        max_requests: Requests admitted per window for one client.
        window_ms: Window length in milliseconds, counted from the first
            request of the window.
    """

    max_requests: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds advertised to throttled clients (the full window)."""
        return math.ceil(self.window_ms / 1000)


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limit stores."""

    @abstractmethod
    def consume(self, key: str, policy: RouteLimitPolicy) -> RateLimitResult:
        """Count one request against ``key`` under ``policy``.

        Args:
            key: Bucket identifier (client identifier plus route prefix).
            policy: Budget applied to the bucket.

        Returns:
            RateLimitResult describing whether the request was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop expired buckets and return how many were removed."""
        raise NotImplementedError
