"""Conversions between domain values and SQLite column values."""

from datetime import datetime
from typing import Any
from uuid import UUID


def to_db_ts(value: datetime | None) -> str | None:
    """Convert a datetime to ISO text for storage.

    Args:
        value: Datetime to store (may be None)

    Returns:
        ISO 8601 string or None
    """
    return value.isoformat() if value else None


def from_db_ts(value: Any) -> datetime | None:
    """Parse stored ISO text back into a datetime."""
    return datetime.fromisoformat(value) if value else None


def to_db_id(value: UUID | None) -> str | None:
    return str(value) if value else None


def from_db_id(value: Any) -> UUID | None:
    return UUID(value) if value else None
