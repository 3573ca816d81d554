# core/frequency.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

# Checked in order; first divisor that divides the hour wins.
_RULES: Tuple[Tuple[int, str], ...] = (
    (24, "24x"),
    (12, "12x"),
    (6, "6x"),
    (4, "4x"),
    (3, "3x"),
    (2, "2x"),
)

DEFAULT_LABEL = "1x"


def classify(hour: int) -> str:
    """
    Map an hour of the day (0-23) to its frequency label.

    Hour 0 matches every rule, so the priority order makes it "24x".
    """
    if isinstance(hour, bool) or not isinstance(hour, int):
        raise ValueError(f"hour must be an int, got {type(hour).__name__}")
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in [0, 23], got {hour}")

    for divisor, label in _RULES:
        if hour % divisor == 0:
            return label
    return DEFAULT_LABEL


def hour_of(ts: datetime, tz_name: Optional[str] = None) -> int:
    # Naive timestamps are taken as host local time
    if tz_name:
        return ts.astimezone(ZoneInfo(tz_name)).hour
    if ts.tzinfo is None:
        return ts.hour
    return ts.astimezone().hour


def label_table() -> List[Tuple[int, str]]:
    return [(hour, classify(hour)) for hour in range(24)]
