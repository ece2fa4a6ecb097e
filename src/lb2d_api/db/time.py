# src/lb2d_api/db/time.py
"""Clock helpers for stored timestamps and rate limit windows.

Every stored instant is UTC. SQLite returns datetimes without tzinfo, so
expiry checks against stored values are done in SQL, not in Python.
"""

import time
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def epoch_ms() -> float:
    """Return wall-clock milliseconds since the epoch, the rate limiter's time base."""
    return time.time() * 1000
