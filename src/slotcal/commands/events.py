from __future__ import annotations

import json
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any

import typer

from ..calendar_events import (
    CalendarEvent,
    event_status,
    group_events_by_date,
    load_calendar_events,
    summary_text,
)
from ..civil_time import format_section_date, format_time, to_fixed_offset_iso
from .common import CONFIG_OPTION, DEBUG_OPTION, JSON_OPTION, NOW_OPTION, prepare, resolve_now

EVENTS_OPTION = typer.Option(
    ...,
    "--events",
    help="JSON file with calendar events (Google Calendar items).",
)


def events(
    events_path: Path = EVENTS_OPTION,
    now: str | None = NOW_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """List calendar events by day with past/current/future status."""
    cfg = prepare(config, debug=debug)
    tz = cfg.calendar.tz
    current = resolve_now(now, tz=tz) or datetime.now(tz)

    try:
        loaded = load_calendar_events(events_path, tz=tz)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read events from {events_path}: {exc}") from exc

    groups = group_events_by_date(loaded, tz=tz)
    days = sorted(groups)

    if json_output:
        payload = {
            "days": [
                {
                    "date": key,
                    "label": format_section_date(key, tz=tz),
                    "summary": summary_text(groups[key], current),
                    "events": [_event_payload(event, current, tz=tz) for event in groups[key]],
                }
                for key in days
            ]
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        raise typer.Exit(code=0)

    for key in days:
        typer.echo(f"{format_section_date(key, tz=tz)}  {summary_text(groups[key], current)}")
        for event in groups[key]:
            if event.all_day:
                when = "終日"
            else:
                when = f"{format_time(event.start, tz=tz)}-{format_time(event.end, tz=tz)}"
            marker = " [AI]" if event.ai_scheduled else ""
            typer.echo(f"  {when} {event_status(event, current)} {event.summary}{marker}")
    raise typer.Exit(code=0)


def _event_payload(event: CalendarEvent, now: datetime, *, tz: tzinfo) -> dict[str, Any]:
    return {
        "id": event.event_id,
        "summary": event.summary,
        "start": to_fixed_offset_iso(event.start, tz=tz),
        "end": to_fixed_offset_iso(event.end, tz=tz),
        "all_day": event.all_day,
        "ai_scheduled": event.ai_scheduled,
        "status": event_status(event, now),
    }
