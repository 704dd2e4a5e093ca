"""Datetime helpers for response schemas."""

from datetime import datetime


def to_iso(value: datetime | None) -> str | None:
    """ISO8601 string for API payloads, None passes through."""
    return value.isoformat() if value is not None else None
