"""Pydantic schemas for error payloads produced outside route handlers."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please try again later."


class RateLimitErrorBody(BaseModel):
    """JSON body of the edge filter's 429 response."""

    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(
        TOO_MANY_REQUESTS_MESSAGE,
        description="Human-readable explanation of the rejection.",
    )
    retry_after: int = Field(
        ...,
        alias="retryAfter",
        ge=0,
        description="Seconds to wait before retrying (also sent as Retry-After).",
    )
