"""
Shared utility functions for drift signal computation.

This module contains pure helpers used by the series builders, the drift
analyzer and the association engine: window resolution, UTC time truncation,
timestamp parsing and the interpolated quantile.
"""

import math
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from drift_signal.core.drift_config import WINDOW_DAYS

DAY = timedelta(days=1)

_FRACTION_RE = re.compile(r"\.(\d+)(?=([+-]\d{2}:?\d{2})?$)")


# --- Window and Clock Helpers ---

def window_to_days(window: str) -> int:
    """Map a window label (7d, 14d, 30d) to a day count; anything else is 7."""
    return WINDOW_DAYS.get(window, 7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_day_start(value: datetime) -> datetime:
    value = ensure_utc(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def utc_hour_start(value: datetime) -> datetime:
    value = ensure_utc(value)
    return datetime(value.year, value.month, value.day, value.hour, tzinfo=timezone.utc)


def day_window(days: int, now: datetime) -> Tuple[datetime, datetime]:
    """
    Resolve the calendar-day range of a window.

    Args:
        days: Number of UTC calendar days in the window
        now: Reference time

    Returns:
        (start, end) where end is today's UTC midnight and start is
        ``end - (days - 1)`` days. Both bounds are inclusive day starts.
    """
    end = utc_day_start(now)
    start = end - (days - 1) * DAY
    return start, end


def iso_utc(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision and a Z suffix."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# --- Timestamp Parsing ---

def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp string into an aware UTC datetime.

    Naive timestamps are treated as UTC. Returns None when the value
    cannot be parsed.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    # fromisoformat on 3.10 accepts only 3 or 6 fractional digits
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_utc(parsed)


def epoch_to_datetime(value: float) -> Optional[datetime]:
    """Epoch numbers >= 1e12 are milliseconds, smaller ones are seconds."""
    if not math.isfinite(value):
        return None
    seconds = value / 1000.0 if value >= 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# --- Statistics ---

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def quantile(sorted_values: Sequence[float], q: float) -> float:
    """
    Linear-interpolated quantile over an already sorted sequence.

    Returns 0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * q
    base = int(math.floor(pos))
    rest = pos - base
    v0 = sorted_values[base]
    v1 = sorted_values[min(base + 1, len(sorted_values) - 1)]
    return v0 + rest * (v1 - v0)


def mean(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
