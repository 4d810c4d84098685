"""Rate limiting adapters.

The edge filter starts with a process-local store; a shared store can replace
it behind ``AbstractRateLimiter`` without changing the HTTP layer.
"""

from marketplace.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    RouteLimitPolicy,
)
from marketplace.adapters.rate_limit.in_memory import InMemoryRateLimiter, RateLimitRecord

__all__ = [
    "AbstractRateLimiter",
    "InMemoryRateLimiter",
    "RateLimitRecord",
    "RateLimitResult",
    "RouteLimitPolicy",
]
