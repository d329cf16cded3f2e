from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from pathlib import Path
from typing import Any, Literal

from .civil_time import JST, date_key, parse_instant, to_fixed_offset_iso
from .planning.models import BusyInterval, NoSlotFound, Placed

AI_SCHEDULED_MARKER = "[AI-SCHEDULED]"
UNTITLED_SUMMARY = "(無題)"

EventStatus = Literal["past", "current", "future"]


@dataclass(frozen=True)
class CalendarEvent:
    event_id: str
    summary: str
    start: datetime
    end: datetime
    all_day: bool = False
    ai_scheduled: bool = False

    def as_busy_interval(self) -> BusyInterval:
        return BusyInterval(start=self.start, end=self.end, all_day=self.all_day, summary=self.summary)


def calendar_event_from_item(item: dict[str, Any], *, tz: tzinfo = JST) -> CalendarEvent:
    """Parse one Google Calendar v3 event resource."""
    start_raw = item.get("start") or {}
    end_raw = item.get("end") or {}
    if not isinstance(start_raw, dict) or not isinstance(end_raw, dict):
        raise ValueError(f"Event {item.get('id', '')!r} has malformed start/end fields.")
    all_day = bool(start_raw.get("date"))

    if all_day:
        start = _local_midnight(start_raw.get("date"), tz=tz)
        end = _local_midnight(end_raw.get("date") or start_raw.get("date"), tz=tz)
    else:
        start = _required_instant(start_raw.get("dateTime"), tz=tz)
        end = _required_instant(end_raw.get("dateTime"), tz=tz)

    description = item.get("description") or ""
    return CalendarEvent(
        event_id=str(item.get("id", "")),
        summary=str(item.get("summary") or UNTITLED_SUMMARY),
        start=start,
        end=end,
        all_day=all_day,
        ai_scheduled=AI_SCHEDULED_MARKER in description,
    )


def load_calendar_events(path: Path, *, tz: tzinfo = JST) -> list[CalendarEvent]:
    """Read events from a JSON file: a list of items or an events.list response."""
    raw: Any = json.loads(path.read_text(encoding="utf-8-sig"))
    if isinstance(raw, dict):
        raw = raw.get("items", [])
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of calendar events in {path}")
    return [calendar_event_from_item(item, tz=tz) for item in raw if isinstance(item, dict)]


def busy_intervals(events: Iterable[CalendarEvent]) -> list[BusyInterval]:
    return [event.as_busy_interval() for event in events]


def placement_event_body(
    title: str,
    placement: Placed | NoSlotFound,
    *,
    tz: tzinfo = JST,
    timezone_name: str = "Asia/Tokyo",
) -> dict[str, Any]:
    if not isinstance(placement, Placed):
        raise TypeError("Cannot build a calendar event for an unplaced task.")
    return {
        "summary": title,
        "description": f"{AI_SCHEDULED_MARKER} このイベントはAIスケジューラーが自動作成しました。",
        "start": {"dateTime": to_fixed_offset_iso(placement.start, tz=tz), "timeZone": timezone_name},
        "end": {"dateTime": to_fixed_offset_iso(placement.end, tz=tz), "timeZone": timezone_name},
    }


def event_status(event: CalendarEvent, now: datetime) -> EventStatus:
    if event.end <= now:
        return "past"
    if event.start <= now:
        return "current"
    return "future"


def group_events_by_date(
    events: Iterable[CalendarEvent], *, tz: tzinfo = JST
) -> dict[str, list[CalendarEvent]]:
    groups: dict[str, list[CalendarEvent]] = {}
    for event in events:
        groups.setdefault(date_key(event.start, tz=tz), []).append(event)
    for key, grouped in groups.items():
        groups[key] = sorted(grouped, key=lambda event: event.start)
    return groups


def summary_text(events: Sequence[CalendarEvent], now: datetime) -> str:
    finished = sum(1 for event in events if event.end <= now)
    return f"{finished}件終了 ・ 残り{len(events) - finished}件"


def _local_midnight(value: Any, *, tz: tzinfo) -> datetime:
    if not isinstance(value, str):
        raise ValueError("All-day event is missing start.date.")
    try:
        day = date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid all-day date: {value!r}") from exc
    return datetime.combine(day, time.min, tzinfo=tz)


def _required_instant(value: Any, *, tz: tzinfo) -> datetime:
    parsed = parse_instant(value, tz=tz) if isinstance(value, str) else None
    if parsed is None:
        raise ValueError(f"Timed event has an invalid dateTime: {value!r}")
    return parsed
