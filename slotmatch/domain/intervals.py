"""
Pure functions over half-open time ranges.

No I/O happens here; every function returns new ``TimeRange`` values and never
mutates its inputs.
"""

from datetime import timedelta
from typing import Iterable, List

from .models import TimeRange


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """True iff the two ranges share at least one instant."""
    return a.start < b.end and b.start < a.end


def contains(window: TimeRange, request: TimeRange) -> bool:
    """True iff ``window`` fully covers ``request``."""
    return window.start <= request.start and window.end >= request.end


def subtract(
    window: TimeRange,
    busy_ranges: Iterable[TimeRange],
    buffer: timedelta = timedelta(0),
) -> List[TimeRange]:
    """
    Subtract busy times from a window, yielding the maximal free ranges.

    Busy ranges may arrive in any order and may overlap each other. Parts of
    a busy range outside the window are ignored. ``buffer`` is kept clear on
    both sides of every busy range, including ranges that end right before
    the window starts or begin right after it ends.

    Example:
    Window: 09:00 - 17:00
    Busy: [14:00-15:00, 10:00-11:00]
    Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
    """
    free_ranges: List[TimeRange] = []
    cursor = window.start

    for busy in sorted(busy_ranges, key=lambda r: r.start):
        if busy.end + buffer <= window.start or busy.start - buffer >= window.end:
            continue

        # Free time before this busy period
        free_end = min(busy.start - buffer, window.end)
        if cursor < free_end:
            free_ranges.append(TimeRange(start=cursor, end=free_end))

        cursor = min(max(cursor, busy.end + buffer), window.end)

    if cursor < window.end:
        free_ranges.append(TimeRange(start=cursor, end=window.end))

    return free_ranges
