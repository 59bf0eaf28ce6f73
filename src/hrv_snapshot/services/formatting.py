"""
Display formatting and value extraction.

Each metric is rendered as a display string ("65 ms", "7.5 h", "4321") or the
sentinel, and history values are recovered by re-parsing that string.
"""

import re
from collections.abc import Iterable
from datetime import datetime

from hrv_snapshot.domain.metrics import SENTINEL, IntervalSample

_NON_NUMERIC = re.compile(r"[^0-9.]")


def format_hrv(seconds: float | None) -> str:
    """Format an SDNN duration given in seconds as integer milliseconds."""
    if seconds is None:
        return SENTINEL
    return f"{seconds * 1000:.0f} ms"


def format_resting_hr(bpm: float | None) -> str:
    if bpm is None:
        return SENTINEL
    return f"{bpm:.0f} bpm"


def format_sleep(asleep_seconds: float | None) -> str:
    if asleep_seconds is None:
        return SENTINEL
    return f"{asleep_seconds / 3600:.1f} h"


def format_mindful(mindful_seconds: float | None) -> str:
    if mindful_seconds is None:
        return SENTINEL
    return f"{mindful_seconds / 60:.0f} min"


def format_steps(steps: float | None) -> str:
    if steps is None:
        return SENTINEL
    return f"{steps:.0f}"


def format_active_energy(kcal: float | None) -> str:
    if kcal is None:
        return SENTINEL
    return f"{kcal:.0f} kcal"


def sum_interval_seconds(
    intervals: Iterable[IntervalSample],
    start: datetime,
    end: datetime,
    states: Iterable[str] | None = None,
) -> float | None:
    """
    Sum interval durations clipped to [start, end).

    Args:
        intervals: Category samples.
        start: Window start (inclusive).
        end: Window end (exclusive).
        states: If given, only intervals tagged with one of these states count.

    Returns:
        Total seconds, or None if no interval qualified.
    """
    allowed = set(states) if states is not None else None
    total = 0.0
    matched = False

    for interval in intervals:
        if allowed is not None and interval.state not in allowed:
            continue

        clipped_start = max(interval.start, start)
        clipped_end = min(interval.end, end)
        if clipped_end <= clipped_start:
            continue

        total += (clipped_end - clipped_start).total_seconds()
        matched = True

    return total if matched else None


def parse_display_value(display_value: str) -> float | None:
    """
    Recover the numeric value embedded in a display string.

    Everything except digits and the decimal point is stripped before
    parsing. The sentinel never yields a value.

    Returns:
        Parsed value, or None if nothing parseable remains.
    """
    if display_value.strip() == SENTINEL:
        return None

    cleaned = _NON_NUMERIC.sub("", display_value)
    if not cleaned:
        return None

    try:
        return float(cleaned)
    except ValueError:
        return None
