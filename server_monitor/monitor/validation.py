"""User-input validation. Messages are shown to the user verbatim."""

from __future__ import annotations

from typing import Any

from .models import MAX_INTERVAL_MINUTES, MIN_INTERVAL_MINUTES


class ValidationError(ValueError):
    """Rejected user input; ``str(err)`` is the user-facing message."""


def validate_server_fields(domain: str | None, expected_status_code: Any) -> tuple[str, int]:
    """Check add/edit form input and return the cleaned (domain, code)."""
    trimmed = (domain or "").strip()
    if not trimmed:
        raise ValidationError("Domain cannot be empty")

    code = _as_int(expected_status_code)
    if code is None or not 100 <= code <= 599:
        raise ValidationError("Status code must be between 100 and 599")
    return trimmed, code


def validate_interval(value: Any) -> int:
    """Check an auto-check interval in minutes."""
    minutes = _as_int(value)
    if minutes is None:
        raise ValidationError("Please enter a valid number.")
    if minutes < MIN_INTERVAL_MINUTES:
        raise ValidationError("Interval must be at least 1 minute.")
    if minutes > MAX_INTERVAL_MINUTES:
        raise ValidationError("Interval cannot exceed 60 minutes.")
    return minutes


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
