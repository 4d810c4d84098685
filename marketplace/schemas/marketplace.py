"""Pydantic schemas and enums shared by marketplace payload validation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PropertyType(str, Enum):
    RENT = "RENT"
    BUY = "BUY"
    LODGE = "LODGE"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class UserProfileUpdate(BaseModel):
    """Sanitized, length-bounded profile fields a user may edit.

    Serialized with camelCase aliases to match the client payloads.
    """

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName", max_length=50)
    last_name: str | None = Field(default=None, alias="lastName", max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    bio: str | None = Field(default=None, max_length=500)
