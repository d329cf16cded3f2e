from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from datetime import timezone
from pathlib import Path
from typing import Any

from .civil_time import fixed_offset_timezone
from .paths import default_config_path, default_data_dir
from .planning.models import MAX_DURATION_MINUTES


@dataclass(frozen=True)
class CalendarConfig:
    utc_offset_hours: float = 9.0
    timezone_name: str = "Asia/Tokyo"

    @property
    def tz(self) -> timezone:
        return fixed_offset_timezone(self.utc_offset_hours, self.timezone_name)


@dataclass(frozen=True)
class SchedulerConfig:
    work_start_hour: int = 8
    work_end_hour: int = 22
    horizon_days: int = 7
    granularity_minutes: int = 15


@dataclass(frozen=True)
class AnalyzerConfig:
    use_local_model: bool = False
    model_id: str = ""  # empty: SLOTCAL_LOCAL_MODEL or the built-in default
    default_duration_minutes: int = 30


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)


def load_config(path: Path | None = None) -> AppConfig:
    """Load config.toml.

    If `path` is None, load from the default data dir; a missing default file
    yields built-in defaults.
    """
    if path is None and not default_config_path().exists():
        return AppConfig(data_dir=default_data_dir())

    cfg_path = path or default_config_path()
    raw = tomllib.loads(cfg_path.read_text(encoding="utf-8-sig"))

    data_dir = Path(raw.get("data_dir", str(default_data_dir())))

    calendar_raw = raw.get("calendar", {})
    calendar = CalendarConfig(
        utc_offset_hours=float(calendar_raw.get("utc_offset_hours", 9.0)),
        timezone_name=str(calendar_raw.get("timezone_name", "Asia/Tokyo")),
    )
    if not -14 <= calendar.utc_offset_hours <= 14:
        raise ValueError(f"calendar.utc_offset_hours out of range: {calendar.utc_offset_hours}")

    scheduler_raw = raw.get("scheduler", {})
    scheduler = SchedulerConfig(
        work_start_hour=int(scheduler_raw.get("work_start_hour", 8)),
        work_end_hour=int(scheduler_raw.get("work_end_hour", 22)),
        horizon_days=int(scheduler_raw.get("horizon_days", 7)),
        granularity_minutes=int(scheduler_raw.get("granularity_minutes", 15)),
    )
    _validate_scheduler(scheduler)

    analyzer_raw = raw.get("analyzer", {})
    analyzer = AnalyzerConfig(
        use_local_model=_parse_bool(analyzer_raw.get("use_local_model"), default=False),
        model_id=str(analyzer_raw.get("model_id", "")).strip(),
        default_duration_minutes=int(analyzer_raw.get("default_duration_minutes", 30)),
    )
    if not 0 < analyzer.default_duration_minutes <= MAX_DURATION_MINUTES:
        raise ValueError("analyzer.default_duration_minutes must be between 1 and one week.")

    return AppConfig(data_dir=data_dir, calendar=calendar, scheduler=scheduler, analyzer=analyzer)


def _validate_scheduler(scheduler: SchedulerConfig) -> None:
    if not 0 <= scheduler.work_start_hour < scheduler.work_end_hour <= 24:
        raise ValueError(
            "scheduler work hours must satisfy 0 <= work_start_hour < work_end_hour <= 24 "
            f"(got {scheduler.work_start_hour}-{scheduler.work_end_hour})."
        )
    if scheduler.horizon_days <= 0:
        raise ValueError("scheduler.horizon_days must be positive.")
    if scheduler.granularity_minutes <= 0:
        raise ValueError("scheduler.granularity_minutes must be positive.")


def _parse_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
