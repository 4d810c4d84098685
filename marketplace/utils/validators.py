"""Input validation and sanitization for marketplace payloads.

Listing, booking and profile payloads arrive as camelCase JSON objects.
The ``validate_*`` functions collect every problem before failing so clients
can fix a form in one round trip; they raise ``ValidationAppError`` with the
messages in ``details["errors"]``.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Mapping
from urllib.parse import urlparse

from marketplace.core.errors import ValidationAppError
from marketplace.schemas.marketplace import BookingStatus, PropertyType, UserProfileUpdate

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)

MAX_EMAIL_LENGTH = 254

PROPERTY_REQUIRED_STRINGS = ("title", "description", "address", "city", "country")


def is_valid_email(email: str) -> bool:
    return (
        isinstance(email, str)
        and len(email) <= MAX_EMAIL_LENGTH
        and _EMAIL_RE.match(email) is not None
    )


def is_valid_phone(phone: str) -> bool:
    """E.164-style number: optional ``+``, no leading zero, 2 to 15 digits."""
    return isinstance(phone, str) and _PHONE_RE.match(phone) is not None


def sanitize_string(value: Any, max_length: int = 1000) -> str:
    """Trim, truncate and strip markup/script fragments from user text.

    Non-string input yields an empty string.
    """
    if not isinstance(value, str):
        return ""

    cleaned = value.strip()[:max_length]
    cleaned = _ANGLE_BRACKETS_RE.sub("", cleaned)
    cleaned = _JS_PROTOCOL_RE.sub("", cleaned)
    return _EVENT_HANDLER_RE.sub("", cleaned)


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def is_valid_positive_number(value: Any) -> bool:
    """Accepts numbers and numeric strings that are finite and > 0."""
    number = _to_number(value)
    return number is not None and math.isfinite(number) and number > 0


def is_valid_integer(value: Any, min_value: int | None = None, max_value: int | None = None) -> bool:
    """Accepts integral numbers (``3``, ``3.0``, ``"3"``) within optional bounds."""
    number = _to_number(value)
    if number is None or not math.isfinite(number) or not number.is_integer():
        return False
    if min_value is not None and number < min_value:
        return False
    if max_value is not None and number > max_value:
        return False
    return True


def is_valid_property_type(value: Any) -> bool:
    return value in {t.value for t in PropertyType}


def is_valid_booking_status(value: Any) -> bool:
    return value in {s.value for s in BookingStatus}


def _is_coordinate(value: Any, bound: float) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and -bound <= value <= bound
    )


def _raise_if_errors(code: str, message: str, errors: list[str]) -> None:
    if not errors:
        return
    logger.info("validation.failed", extra={"error_code": code, "error_count": len(errors)})
    raise ValidationAppError(code=code, message=message, details={"errors": errors})


def validate_property_data(data: Mapping[str, Any]) -> None:
    """Validate a listing create/update payload.

    Raises:
        ValidationAppError: ``invalid_property`` with every failed rule.
    """
    errors: list[str] = []

    for field in PROPERTY_REQUIRED_STRINGS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"{field} is required")

    if not is_valid_property_type(data.get("propertyType")):
        errors.append("Invalid property type")

    if not is_valid_positive_number(data.get("price")):
        errors.append("Price must be a positive number")

    if not is_valid_integer(data.get("bedrooms"), 0, 100):
        errors.append("Bedrooms must be between 0 and 100")

    if not is_valid_integer(data.get("bathrooms"), 0, 100):
        errors.append("Bathrooms must be between 0 and 100")

    if not is_valid_integer(data.get("maxGuests"), 1, 100):
        errors.append("Max guests must be between 1 and 100")

    if not _is_coordinate(data.get("latitude"), 90):
        errors.append("Invalid latitude")

    if not _is_coordinate(data.get("longitude"), 180):
        errors.append("Invalid longitude")

    images = data.get("images")
    if not isinstance(images, list) or not images:
        errors.append("At least one image is required")
    elif not all(is_valid_url(img) for img in images):
        errors.append("Invalid image URL")

    amenities = data.get("amenities")
    if amenities and not isinstance(amenities, list):
        errors.append("Amenities must be an array")

    _raise_if_errors("invalid_property", "Invalid property data", errors)


def _parse_datetime(value: Any) -> datetime | None:
    """Parse ISO-8601 strings, dates and datetimes; naive values are UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_booking_data(data: Mapping[str, Any], now: datetime | None = None) -> None:
    """Validate a booking request payload.

    Args:
        data: Payload with ``propertyId``, ``checkIn``, ``checkOut``, ``guests``.
        now: Reference instant for the "future check-in" rule (defaults to UTC now).

    Raises:
        ValidationAppError: ``invalid_booking`` with every failed rule.
    """
    errors: list[str] = []
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    property_id = data.get("propertyId")
    if not isinstance(property_id, str) or not property_id:
        errors.append("Property ID is required")

    if not data.get("checkIn") or not data.get("checkOut"):
        errors.append("Check-in and check-out dates are required")

    check_in = _parse_datetime(data.get("checkIn"))
    check_out = _parse_datetime(data.get("checkOut"))

    if check_in is None or check_out is None:
        errors.append("Invalid date format")
    else:
        if check_in < now:
            errors.append("Check-in date must be in the future")
        if check_out <= check_in:
            errors.append("Check-out date must be after check-in date")

    if not is_valid_integer(data.get("guests"), 1, 100):
        errors.append("Guests must be between 1 and 100")

    _raise_if_errors("invalid_booking", "Invalid booking data", errors)


def sanitize_user_profile(data: Mapping[str, Any]) -> UserProfileUpdate:
    """Keep only editable profile fields, sanitized and truncated."""

    def _clean(field: str, max_length: int) -> str | None:
        value = data.get(field)
        return sanitize_string(value, max_length) if value else None

    return UserProfileUpdate(
        first_name=_clean("firstName", 50),
        last_name=_clean("lastName", 50),
        phone=_clean("phone", 20),
        bio=_clean("bio", 500),
    )
