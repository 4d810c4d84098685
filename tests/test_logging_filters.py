"""Tests for sensitive data filtering and JSON formatting in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from marketplace.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def log_stream() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_marketplace_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_redacts_auth_tokens_and_cookies(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "auth.session",
        extra={
            "authorization": "Bearer secret-token",
            "cookie": "stack-refresh=abc",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "secret-token" not in output
    assert "stack-refresh" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_redacts_host_onboarding_details(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "onboarding.completed",
        extra={"id_number": "A1234567", "account_details": "0123456789", "phone": "+2348012345678"},
    )

    output = stream.getvalue()
    assert "A1234567" not in output
    assert "0123456789" not in output
    assert "+2348012345678" not in output


def test_redacts_nested_headers(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "request.headers",
        extra={"headers": {"X-Forwarded-For": "1.2.3.4", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "1.2.3.4" not in output
    assert "pytest" in output


def test_rate_limit_fields_pass_through(log_stream) -> None:
    logger, stream = log_stream

    logger.warning(
        "rate_limit.exceeded",
        extra={"route_prefix": "/api/bookings", "key_hash": "abcd1234", "limit": 20},
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.exceeded"
    assert payload["level"] == "warning"
    assert payload["route_prefix"] == "/api/bookings"
    assert payload["limit"] == 20
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_is_attached_from_context(log_stream) -> None:
    logger, stream = log_stream

    set_request_id("req-123")
    try:
        logger.info("cache.hit")
    finally:
        clear_request_id()

    payload = json.loads(stream.getvalue())
    assert payload["request_id"] == "req-123"
