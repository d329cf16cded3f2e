from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import typer

from ..calendar_events import busy_intervals, load_calendar_events
from ..civil_time import at_local_time, format_time
from ..planning.slots import find_free_slots
from .common import CONFIG_OPTION, DEBUG_OPTION, JSON_OPTION, prepare, slot_payload

EVENTS_OPTION = typer.Option(
    ...,
    "--events",
    help="JSON file with calendar events (Google Calendar items).",
)
DATE_OPTION = typer.Option(..., "--date", help="Civil date, YYYY-MM-DD.")
MIN_MINUTES_OPTION = typer.Option(30, "--min-minutes", help="Shortest slot to report.")


def free_slots(
    events: Path = EVENTS_OPTION,
    day: str = DATE_OPTION,
    min_minutes: int = MIN_MINUTES_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """List free slots within working hours on one day."""
    cfg = prepare(config, debug=debug)
    tz = cfg.calendar.tz

    try:
        target = date.fromisoformat(day)
    except ValueError as exc:
        raise typer.BadParameter(f"--date must be YYYY-MM-DD: {day!r}") from exc
    if min_minutes <= 0:
        raise typer.BadParameter("--min-minutes must be positive.")

    try:
        busy = busy_intervals(load_calendar_events(events, tz=tz))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read events from {events}: {exc}") from exc

    window_start = at_local_time(target, cfg.scheduler.work_start_hour, tz=tz)
    window_end = at_local_time(target, cfg.scheduler.work_end_hour, tz=tz)
    slots = find_free_slots(busy, window_start, window_end, min_minutes)

    if json_output:
        payload = {
            "date": target.isoformat(),
            "slots": [slot_payload(slot, tz=tz) for slot in slots],
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        raise typer.Exit(code=0)

    typer.echo(f"free_slots: date={target.isoformat()} count={len(slots)}")
    for slot in slots:
        typer.echo(
            "slot: "
            f"{format_time(slot.start, tz=tz)}-{format_time(slot.end, tz=tz)} "
            f"minutes={int(slot.duration_minutes)}"
        )
    raise typer.Exit(code=0)
