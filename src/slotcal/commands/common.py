from __future__ import annotations

from datetime import datetime, tzinfo
from functools import partial
from pathlib import Path
from typing import Any

import typer

from ..civil_time import parse_instant, to_fixed_offset_iso
from ..config import AppConfig, load_config
from ..logging_config import configure_logging
from ..planning.models import FreeSlot, Placed, ScheduleResult, TaskAnalysis
from ..task_intake import TaskAnalyzer

CONFIG_OPTION = typer.Option(None, "--config", help="Path to config.toml")
DEBUG_OPTION = typer.Option(False, "--debug", help="Enable debug logging.")
JSON_OPTION = typer.Option(False, "--json", help="Emit machine-readable JSON output.")
NOW_OPTION = typer.Option(
    None,
    "--now",
    help="Reference time (ISO 8601). Defaults to the current time.",
)
MODEL_OPTION = typer.Option(
    False,
    "--model",
    help="Try the local transformers model before the rule-based analyzer.",
)


def prepare(config: Path | None, *, debug: bool) -> AppConfig:
    try:
        cfg = load_config(config)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid config: {exc}") from exc

    cfg.data_dir.mkdir(parents=True, exist_ok=True)
    configure_logging(cfg.data_dir / "slotcal.log", level="DEBUG" if debug else "INFO")
    return cfg


def resolve_now(value: str | None, *, tz: tzinfo) -> datetime | None:
    if value is None:
        return None
    parsed = parse_instant(value, tz=tz)
    if parsed is None:
        raise typer.BadParameter(f"--now must be an ISO 8601 date-time: {value!r}")
    return parsed


def select_analyzer(cfg: AppConfig, *, use_model: bool) -> TaskAnalyzer | None:
    if not (use_model or cfg.analyzer.use_local_model):
        return None

    from ..model_analyzer import analyze_with_local_model

    return partial(analyze_with_local_model, model_id=cfg.analyzer.model_id or None)


def analysis_payload(analysis: TaskAnalysis, *, tz: tzinfo) -> dict[str, Any]:
    return {
        "title": analysis.title,
        "description": analysis.description,
        "duration_minutes": analysis.duration_minutes,
        "deadline": _optional_iso(analysis.deadline, tz=tz),
        "preferred_start_time": _optional_iso(analysis.preferred_start_time, tz=tz),
        "category": analysis.category,
        "priority": analysis.priority,
    }


def result_payload(result: ScheduleResult, *, tz: tzinfo) -> dict[str, Any]:
    if isinstance(result, Placed):
        return {
            "slot_found": True,
            "start": to_fixed_offset_iso(result.start, tz=tz),
            "end": to_fixed_offset_iso(result.end, tz=tz),
            "reason": result.reason,
        }
    return {
        "slot_found": False,
        "now": to_fixed_offset_iso(result.now, tz=tz),
        "duration_minutes": result.duration_minutes,
    }


def slot_payload(slot: FreeSlot, *, tz: tzinfo) -> dict[str, Any]:
    return {
        "start": to_fixed_offset_iso(slot.start, tz=tz),
        "end": to_fixed_offset_iso(slot.end, tz=tz),
        "duration_minutes": int(slot.duration_minutes),
    }


def _optional_iso(value: datetime | None, *, tz: tzinfo) -> str | None:
    return to_fixed_offset_iso(value, tz=tz) if value is not None else None
