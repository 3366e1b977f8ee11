"""Utilities for datetime handling."""

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def iso_timestamp(dt: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp used for bookkeeping fields."""
    return (dt or now_utc()).isoformat()


def format_created_date(dt: datetime | None = None) -> str:
    """Local calendar date, e.g. ``2024-05-01``."""
    dt = dt or datetime.now()
    return dt.strftime("%Y-%m-%d")


def format_modified_date(dt: datetime | None = None) -> str:
    """Local date with minutes, e.g. ``2024-05-01T09:30``."""
    dt = dt or datetime.now()
    return dt.strftime("%Y-%m-%dT%H:%M")
