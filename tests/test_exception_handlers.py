"""Tests for global exception handlers.

Validates that domain errors map to the right HTTP status with a consistent
error envelope, and that unexpected errors never leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.core.errors import (
    AppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from marketplace.core.exception_handlers import general_exception_handler, setup_exception_handlers
from marketplace.utils.validators import validate_property_data


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400_with_details(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.post("/api/properties")
        async def create_property() -> dict:
            validate_property_data({"title": "Loft"})
            return {}

        response = client.post("/api/properties")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_property"
        assert error["message"] == "Invalid property data"
        assert "description is required" in error["details"]["errors"]
        assert "request_id" in error

    def test_not_found_returns_404(self, client: TestClient, app_with_handlers: FastAPI) -> None:
        @app_with_handlers.get("/api/properties/{property_id}")
        async def get_property(property_id: str) -> dict:
            raise NotFoundAppError(
                code="property_not_found",
                message="Property not found",
                details={"resource": "property", "resource_id": property_id},
            )

        response = client.get("/api/properties/missing")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "property_not_found"
        assert error["details"]["resource_id"] == "missing"

    def test_rate_limit_error_returns_429_with_retry_after(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.post("/api/bookings")
        async def create_booking() -> dict:
            raise RateLimitAppError(
                code="action_rate_limited",
                message="Too many requests. Please try again later.",
                details={"retry_after": 30},
            )

        response = client.post("/api/bookings")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        assert response.json()["error"]["code"] == "action_rate_limited"

    def test_base_app_error_defaults_to_400(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.get("/api/other")
        async def other() -> dict:
            raise AppError(code="bad_request", message="Bad request")

        response = client.get("/api/other")

        assert response.status_code == 400
        assert "details" not in response.json()["error"]

    def test_details_context_is_serialized(
        self, client: TestClient, app_with_handlers: FastAPI
    ) -> None:
        @app_with_handlers.post("/api/user/create-profile")
        async def create_profile() -> dict:
            raise ValidationAppError(
                code="invalid_profile",
                message="Invalid profile data",
                details={"field": "phone", "context": {"max_length": 20}},
            )

        response = client.post("/api/user/create-profile")

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert details == {"field": "phone", "context": {"max_length": 20}}

    def test_error_str_is_message(self) -> None:
        exc = ValidationAppError(code="x", message="readable")

        assert str(exc) == "readable"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_returns_generic_500(self) -> None:
        request = AsyncMock()
        request.url.path = "/api/favorites"
        request.method = "POST"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "database connection" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_never_leaks_stack_trace(self) -> None:
        request = AsyncMock()
        request.url.path = "/api/favorites"
        request.method = "POST"

        response = asyncio.run(general_exception_handler(request, ValueError("boom")))

        response_text = bytes(response.body).decode()
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


def test_setup_registers_handlers(app_with_handlers: FastAPI) -> None:
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers


def test_multiple_handler_setups_does_not_fail() -> None:
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
