"""Route policies and client bucketing for API rate limiting.

Rate limiting strategy:
- Each API route family (``/api/favorites``, ``/api/bookings``...) has its
  own budget; the policy for a path is the longest configured prefix of it.
- Requests are bucketed per client identifier and route prefix, so one
  client exhausting the bookings budget can still browse properties.
- The client identifier comes from proxy headers. Requests without them all
  share the ``"unknown"`` bucket.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Iterator, Mapping

from marketplace.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RouteLimitPolicy,
)
from marketplace.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

DEFAULT_ROUTE_POLICIES: tuple[tuple[str, RouteLimitPolicy], ...] = (
    ("/api/favorites", RouteLimitPolicy(max_requests=30, window_ms=60_000)),
    ("/api/properties", RouteLimitPolicy(max_requests=60, window_ms=60_000)),
    ("/api/bookings", RouteLimitPolicy(max_requests=20, window_ms=60_000)),
    ("/api/user/complete-onboarding", RouteLimitPolicy(max_requests=5, window_ms=60_000)),
    ("/api/user/create-profile", RouteLimitPolicy(max_requests=5, window_ms=60_000)),
    ("/api/user/host-status", RouteLimitPolicy(max_requests=30, window_ms=60_000)),
)


class RoutePolicyTable:
    """Ordered, immutable mapping of route prefixes to rate limit policies.

    Prefixes are compared as plain strings, so ``/api/properties`` also
    covers ``/api/properties/abc123``. When several prefixes match, the
    longest wins. Duplicate prefixes are rejected, which rules out ties.
    """

    def __init__(self, policies: Iterable[tuple[str, RouteLimitPolicy]]) -> None:
        entries = tuple(policies)
        seen: set[str] = set()
        for prefix, policy in entries:
            if not prefix.startswith("/"):
                raise ValueError(f"route prefix must start with '/': {prefix!r}")
            if prefix in seen:
                raise ValueError(f"duplicate route prefix: {prefix!r}")
            if not isinstance(policy, RouteLimitPolicy):
                raise ValueError(f"invalid policy for {prefix!r}")
            seen.add(prefix)
        self._entries = entries

    def __iter__(self) -> Iterator[tuple[str, RouteLimitPolicy]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, path: str) -> tuple[str, RouteLimitPolicy] | None:
        """Return ``(prefix, policy)`` for the longest prefix of ``path``, if any."""
        best: tuple[str, RouteLimitPolicy] | None = None
        for prefix, policy in self._entries:
            if path.startswith(prefix) and (best is None or len(prefix) > len(best[0])):
                best = (prefix, policy)
        return best


def get_client_identifier(headers: Mapping[str, str]) -> str:
    """Derive the rate limit identity of the caller from proxy headers.

    Uses the first ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the
    shared ``"unknown"`` sentinel. Empty values fall through.

    Args:
        headers: Request headers. Starlette ``Headers`` are case-insensitive;
            plain dicts must use lower-case names.
    """
    forwarded_for = headers.get("x-forwarded-for") or ""
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or UNKNOWN_CLIENT


def build_rate_limit_key(client_identifier: str, route_prefix: str) -> str:
    return f"{client_identifier}:{route_prefix}"


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def generate_rate_limit_key(identifier: str, action: str) -> str:
    """Key for action-level limits (e.g. one user's listing creations)."""
    return f"ratelimit:{identifier}:{action}"


def enforce_action_limit(
    limiter: AbstractRateLimiter,
    identifier: str,
    action: str,
    policy: RouteLimitPolicy,
) -> RateLimitResult:
    """Count one ``action`` by ``identifier`` and raise when over budget.

    Complements the edge filter for quotas that are not tied to a route
    prefix, such as per-user limits inside an authenticated handler.

    Raises:
        RateLimitAppError: When the action budget for the window is exhausted.
    """
    key = generate_rate_limit_key(identifier, action)
    result = limiter.consume(key, policy)
    if result.allowed:
        return result

    logger.warning(
        "rate_limit.action_exceeded",
        extra={
            "action": action,
            "key_hash": hash_limiter_key(key),
            "limit": result.limit,
            "retry_after_s": result.retry_after_seconds,
        },
    )
    raise RateLimitAppError(
        code="action_rate_limited",
        message="Too many requests. Please try again later.",
        details={"retry_after": result.retry_after_seconds or policy.retry_after_seconds},
    )
