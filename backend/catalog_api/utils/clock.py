"""Timestamp helpers shared by models and stores."""
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime, the form stored in SQLite."""

    return datetime.now(timezone.utc).replace(tzinfo=None)
