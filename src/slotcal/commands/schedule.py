from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from ..calendar_events import busy_intervals, load_calendar_events, placement_event_body
from ..civil_time import format_date, format_time
from ..planning.models import Placed
from ..task_intake import plan_task
from .common import (
    CONFIG_OPTION,
    DEBUG_OPTION,
    JSON_OPTION,
    MODEL_OPTION,
    NOW_OPTION,
    analysis_payload,
    prepare,
    resolve_now,
    result_payload,
    select_analyzer,
)

logger = logging.getLogger(__name__)

TEXT_OPTION = typer.Option(..., "--text", help="Task sentence, e.g. 9時からトレーニング")
EVENTS_OPTION = typer.Option(
    None,
    "--events",
    help="JSON file with existing calendar events (Google Calendar items).",
)


def schedule(
    text: str = TEXT_OPTION,
    events: Path | None = EVENTS_OPTION,
    now: str | None = NOW_OPTION,
    model: bool = MODEL_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Analyze a task sentence and pick a free slot for it."""
    cfg = prepare(config, debug=debug)
    tz = cfg.calendar.tz

    existing = []
    if events is not None:
        try:
            existing = busy_intervals(load_calendar_events(events, tz=tz))
        except (OSError, ValueError) as exc:
            raise typer.BadParameter(f"Cannot read events from {events}: {exc}") from exc

    try:
        plan = plan_task(
            text,
            existing,
            now=resolve_now(now, tz=tz),
            tz=tz,
            scheduler=cfg.scheduler,
            analyzer=select_analyzer(cfg, use_model=model),
            default_duration_minutes=cfg.analyzer.default_duration_minutes,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    result = plan.result
    if json_output:
        payload = {
            "input": plan.input_text,
            "source": plan.analysis_source,
            "duration_explicit": plan.duration_explicit,
            "analysis": analysis_payload(plan.analysis, tz=tz),
            "result": result_payload(result, tz=tz),
        }
        if isinstance(result, Placed):
            payload["event"] = placement_event_body(
                plan.analysis.title,
                result,
                tz=tz,
                timezone_name=cfg.calendar.timezone_name,
            )
        typer.echo(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        raise typer.Exit(code=0 if result.slot_found else 1)

    typer.echo(f"title: {plan.analysis.title}")
    if not isinstance(result, Placed):
        typer.echo(
            f"[fail] No free {result.duration_minutes}-minute slot within "
            f"{cfg.scheduler.horizon_days} day(s).",
            err=True,
        )
        raise typer.Exit(code=1)

    logger.info("Placed %r at %s (%s)", plan.analysis.title, result.start.isoformat(), result.reason)
    typer.echo(
        "scheduled: "
        f"{format_date(result.start, tz=tz)} "
        f"{format_time(result.start, tz=tz)}-{format_time(result.end, tz=tz)} "
        f"reason={result.reason} "
        f"duration={plan.analysis.duration_minutes}m"
    )
    raise typer.Exit(code=0)
