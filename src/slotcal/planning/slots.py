from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .models import BusyInterval, FreeSlot


def find_free_slots(
    busy: Iterable[BusyInterval],
    window_start: datetime,
    window_end: datetime,
    min_minutes: float = 30,
) -> list[FreeSlot]:
    """Return the gaps in `[window_start, window_end)` of at least `min_minutes`.

    All-day and zero-length intervals never block time. Together with the
    remaining busy intervals the result partitions the window.
    """
    if window_end <= window_start:
        return []

    blocking = sorted(
        (
            interval
            for interval in busy
            if not interval.all_day
            and not interval.is_zero_length
            and _overlaps(
                start_a=interval.start,
                end_a=interval.effective_end,
                start_b=window_start,
                end_b=window_end,
            )
        ),
        key=lambda interval: interval.start,
    )

    slots: list[FreeSlot] = []
    cursor = window_start
    for interval in blocking:
        if interval.start > cursor:
            _append_if_long_enough(slots, cursor, interval.start, min_minutes)
        cursor = max(cursor, interval.effective_end)

    if window_end > cursor:
        _append_if_long_enough(slots, cursor, window_end, min_minutes)
    return slots


def conflicting_intervals(
    busy: Iterable[BusyInterval],
    start: datetime,
    end: datetime,
) -> list[BusyInterval]:
    return [
        interval
        for interval in busy
        if not interval.all_day
        and not interval.is_zero_length
        and _overlaps(start_a=interval.start, end_a=interval.effective_end, start_b=start, end_b=end)
    ]


def _append_if_long_enough(
    slots: list[FreeSlot], start: datetime, end: datetime, min_minutes: float
) -> None:
    slot = FreeSlot(start=start, end=end)
    if slot.duration_minutes >= min_minutes:
        slots.append(slot)


def _overlaps(*, start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b
