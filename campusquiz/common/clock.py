"""
Server clock.

Every window decision reads the time from here so that client-reported
times never reach the quiz engine. Values are naive UTC to match the
DateTime columns.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current server time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
