from __future__ import annotations

import json
from pathlib import Path

import typer

from ..civil_time import format_date, format_time
from ..task_intake import analyze_task
from .common import (
    CONFIG_OPTION,
    DEBUG_OPTION,
    JSON_OPTION,
    MODEL_OPTION,
    NOW_OPTION,
    analysis_payload,
    prepare,
    resolve_now,
    select_analyzer,
)

TEXT_OPTION = typer.Option(..., "--text", help="Task sentence, e.g. 明日の10時から会議")


def analyze(
    text: str = TEXT_OPTION,
    now: str | None = NOW_OPTION,
    model: bool = MODEL_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Extract title, duration, start time and category from a task sentence."""
    cfg = prepare(config, debug=debug)
    tz = cfg.calendar.tz

    try:
        analyzed = analyze_task(
            text,
            now=resolve_now(now, tz=tz),
            tz=tz,
            analyzer=select_analyzer(cfg, use_model=model),
            default_duration_minutes=cfg.analyzer.default_duration_minutes,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    analysis = analyzed.analysis
    if json_output:
        payload = {
            "input": text,
            "source": analyzed.source,
            "duration_explicit": analyzed.duration_explicit,
            "analysis": analysis_payload(analysis, tz=tz),
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        raise typer.Exit(code=0)

    typer.echo(f"title: {analysis.title}")
    typer.echo(
        "analysis: "
        f"source={analyzed.source} "
        f"category={analysis.category} "
        f"priority={analysis.priority} "
        f"duration={analysis.duration_minutes}m"
        f"{' (explicit)' if analyzed.duration_explicit else ''}"
    )
    if analysis.preferred_start_time is not None:
        start = analysis.preferred_start_time
        typer.echo(f"preferred_start: {format_date(start, tz=tz)} {format_time(start, tz=tz)}")
    if analysis.deadline is not None:
        deadline = analysis.deadline
        typer.echo(f"deadline: {format_date(deadline, tz=tz)} {format_time(deadline, tz=tz)}")
    raise typer.Exit(code=0)
