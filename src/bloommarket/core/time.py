"""
Timestamp helpers.

All record timestamps (`created_at`, `last_updated_at`) are timezone-aware UTC so that
records coming from the remote service, the mock generator and local mutations compare
cleanly.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
