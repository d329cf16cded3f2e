from __future__ import annotations

from pathlib import Path

import typer

app = typer.Typer(no_args_is_help=True, add_completion=False)

CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.toml")
DEBUG_OPTION = typer.Option(False, "--debug", help="Enable debug logging.")
JSON_OPTION = typer.Option(False, "--json", help="Emit machine-readable JSON output.")
NOW_OPTION = typer.Option(None, "--now", help="Reference time (ISO 8601).")
MODEL_OPTION = typer.Option(False, "--model", help="Try the local transformers model first.")


@app.command()
def analyze(
    text: str = typer.Option(..., "--text", help="Task sentence, e.g. 明日の10時から会議"),
    now: str | None = NOW_OPTION,
    model: bool = MODEL_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Extract title, duration, start time and category from a task sentence."""
    from .commands.analyze import analyze as analyze_command

    analyze_command(
        text=text,
        now=now,
        model=model,
        config=config,
        debug=debug,
        json_output=json_output,
    )


@app.command()
def schedule(
    text: str = typer.Option(..., "--text", help="Task sentence, e.g. 9時からトレーニング"),
    events: Path | None = typer.Option(
        None,
        "--events",
        help="JSON file with existing calendar events (Google Calendar items).",
    ),
    now: str | None = NOW_OPTION,
    model: bool = MODEL_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Analyze a task sentence and pick a free slot for it."""
    from .commands.schedule import schedule as schedule_command

    schedule_command(
        text=text,
        events=events,
        now=now,
        model=model,
        config=config,
        debug=debug,
        json_output=json_output,
    )


@app.command("free-slots")
def free_slots(
    events: Path = typer.Option(..., "--events", help="JSON file with calendar events."),
    day: str = typer.Option(..., "--date", help="Civil date, YYYY-MM-DD."),
    min_minutes: int = typer.Option(30, "--min-minutes", help="Shortest slot to report."),
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """List free slots within working hours on one day."""
    from .commands.free_slots import free_slots as free_slots_command

    free_slots_command(
        events=events,
        day=day,
        min_minutes=min_minutes,
        config=config,
        debug=debug,
        json_output=json_output,
    )


@app.command()
def events(
    events_path: Path = typer.Option(..., "--events", help="JSON file with calendar events."),
    now: str | None = NOW_OPTION,
    config: Path | None = CONFIG_OPTION,
    debug: bool = DEBUG_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """List calendar events by day with past/current/future status."""
    from .commands.events import events as events_command

    events_command(
        events_path=events_path,
        now=now,
        config=config,
        debug=debug,
        json_output=json_output,
    )
