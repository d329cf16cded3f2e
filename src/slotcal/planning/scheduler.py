from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, tzinfo

from ..civil_time import JST, add_days, at_local_time, ceil_to_minutes, local_date, to_local
from .models import (
    BusyInterval,
    FreeSlot,
    NoSlotFound,
    Placed,
    PlacementReason,
    ScheduleResult,
    TaskAnalysis,
)
from .slots import conflicting_intervals, find_free_slots

logger = logging.getLogger(__name__)


def schedule_task(
    analysis: TaskAnalysis,
    existing: Sequence[BusyInterval],
    *,
    now: datetime | None = None,
    work_start_hour: int = 8,
    work_end_hour: int = 22,
    horizon_days: int = 7,
    granularity_minutes: int = 15,
    tz: tzinfo = JST,
) -> ScheduleResult:
    """Pick one interval for `analysis` that avoids every timed busy interval.

    A conflict-free preferred start is honored as-is, even outside working
    hours. Otherwise the rest of the preferred day is tried, then up to
    `horizon_days` civil days starting today within working hours.
    """
    current = to_local(now or datetime.now(tz), tz=tz)
    duration = analysis.duration

    preferred_end = _preferred_end(analysis.preferred_start_time, duration, tz=tz)
    if preferred_end is not None:
        preferred = preferred_end - duration
        conflicts = conflicting_intervals(existing, preferred, preferred_end)
        if not conflicts:
            return Placed(start=preferred, end=preferred_end, reason="preferred")

        logger.debug(
            "Preferred start %s conflicts with %d event(s); searching later the same day",
            preferred.isoformat(),
            len(conflicts),
        )
        day_end = at_local_time(local_date(preferred, tz=tz), work_end_hour, tz=tz)
        nearby = find_free_slots(existing, preferred, day_end, analysis.duration_minutes)
        if nearby:
            return _place(nearby[0], analysis, reason="nearby")

    deadline = to_local(analysis.deadline, tz=tz) if analysis.deadline is not None else None
    for day_offset in range(horizon_days):
        day = local_date(add_days(current, day_offset, tz=tz), tz=tz)
        window_start = at_local_time(day, work_start_hour, tz=tz)
        window_end = at_local_time(day, work_end_hour, tz=tz)

        if day_offset == 0 and window_start < current:
            window_start = max(window_start, ceil_to_minutes(current, granularity_minutes))
        if window_start >= window_end:
            continue

        slots = find_free_slots(existing, window_start, window_end, analysis.duration_minutes)
        if deadline is not None:
            before_deadline = [slot for slot in slots if slot.start + duration <= deadline]
            if before_deadline:
                return _place(before_deadline[0], analysis, reason="deadline")
        if slots:
            return _place(slots[0], analysis, reason="earliest")

    logger.info(
        "No %d-minute slot found within %d day(s) for %r",
        analysis.duration_minutes,
        horizon_days,
        analysis.title,
    )
    return NoSlotFound(now=current, duration_minutes=analysis.duration_minutes)


def _place(slot: FreeSlot, analysis: TaskAnalysis, *, reason: PlacementReason) -> Placed:
    return Placed(start=slot.start, end=slot.start + analysis.duration, reason=reason)


def _preferred_end(preferred: datetime | None, duration: timedelta, *, tz: tzinfo) -> datetime | None:
    if preferred is None:
        return None
    try:
        return to_local(preferred, tz=tz) + duration
    except OverflowError:
        logger.debug("Ignoring preferred start %s: out of datetime range", preferred.isoformat())
        return None
