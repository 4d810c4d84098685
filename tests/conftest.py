"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``marketplace`` import so the
settings object is built with test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("EDGE_RATE_LIMIT_ENABLED", "true")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from marketplace.adapters.rate_limit.in_memory import InMemoryRateLimiter  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Deterministic UNIX-seconds clock; advance with ``clock.return_value += n``."""
    return Mock(return_value=1_000.0)


@pytest.fixture
def limiter(clock: Mock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock=clock)
