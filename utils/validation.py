"""
Input validation utilities for API request bodies.
"""

import re
from datetime import date, datetime
from typing import Any, Optional

from utils.datetime_utils import parse_iso_datetime
from utils.exceptions import ValidationError


def sanitize_text(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize user input text.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r"[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]", "", str(text))
    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


def require_id(payload: dict, field: str) -> str:
    """Return a required identifier field from a request body."""
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' is required")
    return value.strip()


def require_datetime(payload: dict, field: str) -> datetime:
    value = payload.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"'{field}' must be an ISO 8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError as e:
        raise ValidationError(f"'{field}' must be an ISO 8601 datetime") from e


def parse_date(value: Any, field: str = "date") -> date:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"'{field}' must be a YYYY-MM-DD date")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"'{field}' must be a YYYY-MM-DD date") from e


def require_rating(payload: dict, low: int, high: int) -> int:
    value = payload.get("rating")
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError("'rating' must be an integer")
    if not low <= value <= high:
        raise ValidationError(f"'rating' must be between {low} and {high}")
    return value
