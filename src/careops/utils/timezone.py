# src/careops/utils/timezone.py
from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from typing import Any, Optional

import pytz

from src.careops.config import settings

# -----------------------------------------------------------------------------
# Configure local timezone with fallback
# -----------------------------------------------------------------------------
try:
    LOCAL_TZ = pytz.timezone(settings.TIMEZONE)
except pytz.UnknownTimeZoneError as exc:
    logging.getLogger(__name__).warning(
        "Invalid TIMEZONE '%s' in environment; falling back to UTC. Error: %s",
        settings.TIMEZONE,
        exc,
    )
    LOCAL_TZ = pytz.utc

# Anything older than ten years is treated as a corrupt timestamp
_MAX_AGE_MS = 315_360_000_000


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------
def from_epoch(seconds: float) -> datetime:
    """Convert epoch seconds to an aware datetime in the local timezone."""
    return datetime.fromtimestamp(seconds, LOCAL_TZ)


def epoch_millis(seconds: Optional[float] = None) -> int:
    """Epoch milliseconds for `seconds` (defaults to now)."""
    if seconds is None:
        seconds = time.time()
    return int(seconds * 1000)


def local_timezone_name() -> str:
    return str(LOCAL_TZ.zone)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'s' if n > 1 else ''} ago"


def time_ago(timestamp: Any, now_ms: Optional[int] = None) -> str:
    """
    Human "time ago" label for an epoch-millisecond timestamp.

    Computed at read time so it never goes stale in storage. Invalid input
    (non-numeric, NaN, non-positive, in the future, older than ten years)
    yields "Unknown time".
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return "Unknown time"
    if math.isnan(timestamp) or timestamp <= 0:
        return "Unknown time"

    now = epoch_millis() if now_ms is None else now_ms
    diff = now - timestamp
    if diff < 0 or diff > _MAX_AGE_MS:
        return "Unknown time"

    seconds = int(diff // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if seconds < 60:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(days, "day")
