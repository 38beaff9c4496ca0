from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every store in quillflow persists."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
