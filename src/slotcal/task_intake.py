from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, tzinfo
from typing import Literal

from .civil_time import JST, to_local
from .config import SchedulerConfig
from .fallback_analyzer import apply_fallback_corrections, create_fallback_analysis
from .planning.models import BusyInterval, ScheduleResult, TaskAnalysis, TaskCategory
from .planning.scheduler import schedule_task

logger = logging.getLogger(__name__)

AnalysisSource = Literal["model", "fallback"]
TaskAnalyzer = Callable[..., TaskAnalysis]

CATEGORY_DURATION_MINUTES: dict[TaskCategory, int] = {
    "exercise": 60,
    "work": 60,
    "study": 60,
    "chore": 30,
    "shopping": 30,
    "other": 30,
}


@dataclass(frozen=True)
class AnalyzedTask:
    analysis: TaskAnalysis
    source: AnalysisSource
    duration_explicit: bool


@dataclass(frozen=True)
class TaskPlan:
    input_text: str
    analysis: TaskAnalysis
    analysis_source: AnalysisSource
    duration_explicit: bool
    result: ScheduleResult


def analyze_task(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = JST,
    analyzer: TaskAnalyzer | None = None,
    default_duration_minutes: int = 30,
) -> AnalyzedTask:
    """Run the rule-based analysis and, when given, `analyzer` on top of it.

    `analyzer` is called as `analyzer(text, now=..., tz=...)`. A RuntimeError
    from it is logged and the rule-based result is used instead. When it
    succeeds, the locally found start time and duration still win.
    """
    if not text.strip():
        raise ValueError("Input is empty.")

    current = to_local(now or datetime.now(tz), tz=tz)
    fallback = create_fallback_analysis(
        text,
        now=current,
        tz=tz,
        default_duration_minutes=default_duration_minutes,
    )

    if analyzer is not None:
        try:
            external = analyzer(text, now=current, tz=tz)
        except RuntimeError as exc:
            logger.warning("Task analyzer failed; using rule-based analysis: %s", exc)
        else:
            return AnalyzedTask(
                analysis=apply_fallback_corrections(external, fallback),
                source="model",
                duration_explicit=fallback.duration_explicit,
            )

    analysis = fallback.analysis
    if not fallback.duration_explicit:
        analysis = replace(analysis, duration_minutes=estimate_duration_minutes(analysis.category))
    return AnalyzedTask(
        analysis=analysis,
        source="fallback",
        duration_explicit=fallback.duration_explicit,
    )


def plan_task(
    text: str,
    existing: Sequence[BusyInterval],
    *,
    now: datetime | None = None,
    tz: tzinfo = JST,
    scheduler: SchedulerConfig | None = None,
    analyzer: TaskAnalyzer | None = None,
    default_duration_minutes: int = 30,
) -> TaskPlan:
    current = to_local(now or datetime.now(tz), tz=tz)
    settings = scheduler or SchedulerConfig()
    analyzed = analyze_task(
        text,
        now=current,
        tz=tz,
        analyzer=analyzer,
        default_duration_minutes=default_duration_minutes,
    )

    result = schedule_task(
        analyzed.analysis,
        existing,
        now=current,
        work_start_hour=settings.work_start_hour,
        work_end_hour=settings.work_end_hour,
        horizon_days=settings.horizon_days,
        granularity_minutes=settings.granularity_minutes,
        tz=tz,
    )
    return TaskPlan(
        input_text=text,
        analysis=analyzed.analysis,
        analysis_source=analyzed.source,
        duration_explicit=analyzed.duration_explicit,
        result=result,
    )


def estimate_duration_minutes(category: TaskCategory) -> int:
    return CATEGORY_DURATION_MINUTES.get(category, 30)
