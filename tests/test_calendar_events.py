from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from slotcal.calendar_events import (
    AI_SCHEDULED_MARKER,
    CalendarEvent,
    busy_intervals,
    calendar_event_from_item,
    event_status,
    group_events_by_date,
    load_calendar_events,
    placement_event_body,
    summary_text,
)
from slotcal.civil_time import JST
from slotcal.planning.models import NoSlotFound, Placed


def _at(hour: int, minute: int = 0, *, day: int = 14) -> datetime:
    return datetime(2026, 2, day, hour, minute, tzinfo=JST)


def _event(event_id: str, start: datetime, end: datetime) -> CalendarEvent:
    return CalendarEvent(event_id=event_id, summary=event_id, start=start, end=end)


def test_calendar_event_from_timed_item() -> None:
    item = {
        "id": "evt-1",
        "summary": "定例会議",
        "description": f"{AI_SCHEDULED_MARKER} auto",
        "start": {"dateTime": "2026-02-14T01:00:00Z"},
        "end": {"dateTime": "2026-02-14T11:00:00+09:00"},
    }

    event = calendar_event_from_item(item)

    assert event.event_id == "evt-1"
    assert event.summary == "定例会議"
    assert event.start == _at(10)
    assert event.end == _at(11)
    assert event.all_day is False
    assert event.ai_scheduled is True


def test_calendar_event_from_all_day_item_without_summary() -> None:
    item = {"id": "evt-2", "start": {"date": "2026-02-14"}, "end": {"date": "2026-02-15"}}

    event = calendar_event_from_item(item)

    assert event.summary == "(無題)"
    assert event.all_day is True
    assert event.start == _at(0)
    assert event.end == _at(0, day=15)
    assert event.ai_scheduled is False
    assert event.as_busy_interval().all_day is True


@pytest.mark.parametrize(
    "item",
    [
        {"id": "x", "start": {}, "end": {}},
        {"id": "x", "start": {"dateTime": "soon"}, "end": {"dateTime": "later"}},
        {"id": "x", "start": {"date": "2026-13-01"}},
        {"id": "x", "start": "2026-02-14", "end": "2026-02-15"},
    ],
)
def test_malformed_items_are_rejected(item: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        calendar_event_from_item(item)


def test_load_calendar_events_accepts_list_and_events_response(tmp_path: Path) -> None:
    item = {
        "id": "evt-1",
        "summary": "ジム",
        "start": {"dateTime": "2026-02-14T09:00:00+09:00"},
        "end": {"dateTime": "2026-02-14T10:00:00+09:00"},
    }
    list_path = tmp_path / "list.json"
    list_path.write_text(json.dumps([item]), encoding="utf-8")
    response_path = tmp_path / "response.json"
    response_path.write_text(json.dumps({"kind": "calendar#events", "items": [item]}), encoding="utf-8")

    from_list = load_calendar_events(list_path)
    from_response = load_calendar_events(response_path)

    assert from_list == from_response
    assert busy_intervals(from_list)[0].start == _at(9)


def test_load_calendar_events_rejects_non_list(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text('"nope"', encoding="utf-8")

    with pytest.raises(ValueError):
        load_calendar_events(path)


def test_placement_event_body_uses_fixed_offset_times() -> None:
    body = placement_event_body("トレーニング", Placed(start=_at(9), end=_at(10), reason="preferred"))

    assert body["summary"] == "トレーニング"
    assert body["description"].startswith(AI_SCHEDULED_MARKER)
    assert body["start"] == {"dateTime": "2026-02-14T09:00:00+09:00", "timeZone": "Asia/Tokyo"}
    assert body["end"] == {"dateTime": "2026-02-14T10:00:00+09:00", "timeZone": "Asia/Tokyo"}


def test_placement_event_body_refuses_unplaced_task() -> None:
    with pytest.raises(TypeError):
        placement_event_body("トレーニング", NoSlotFound(now=_at(8), duration_minutes=60))


def test_event_status() -> None:
    event = _event("a", _at(9), _at(10))

    assert event_status(event, _at(8)) == "future"
    assert event_status(event, _at(9, 30)) == "current"
    assert event_status(event, _at(10)) == "past"


def test_group_events_by_date_sorts_each_day() -> None:
    events = [
        _event("late", _at(15), _at(16)),
        _event("next", _at(9, day=15), _at(10, day=15)),
        _event("early", _at(9), _at(10)),
    ]

    groups = group_events_by_date(events)

    assert list(groups) == ["2026-02-14", "2026-02-15"]
    assert [event.event_id for event in groups["2026-02-14"]] == ["early", "late"]


def test_summary_text_counts_finished_events() -> None:
    events = [
        _event("a", _at(8), _at(9)),
        _event("b", _at(10), _at(11)),
        _event("c", _at(12), _at(13)),
    ]

    assert summary_text(events, _at(11)) == "2件終了 ・ 残り1件"
