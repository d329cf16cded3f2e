from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

TaskCategory = Literal["work", "study", "exercise", "chore", "shopping", "other"]
TaskPriority = Literal["high", "medium", "low"]
PlacementReason = Literal["preferred", "nearby", "deadline", "earliest"]

TASK_CATEGORIES: tuple[TaskCategory, ...] = (
    "work",
    "study",
    "exercise",
    "chore",
    "shopping",
    "other",
)
TASK_PRIORITIES: tuple[TaskPriority, ...] = ("high", "medium", "low")

# Upper bound for a single task: one week.
MAX_DURATION_MINUTES = 7 * 24 * 60


@dataclass(frozen=True)
class BusyInterval:
    """A time range already occupied on the calendar."""

    start: datetime
    end: datetime
    all_day: bool = False
    summary: str = ""

    @property
    def effective_end(self) -> datetime:
        # Inverted input collapses to a zero-length interval.
        return max(self.start, self.end)

    @property
    def is_zero_length(self) -> bool:
        return self.effective_end == self.start


@dataclass(frozen=True)
class FreeSlot:
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


@dataclass(frozen=True)
class TaskAnalysis:
    title: str
    duration_minutes: int
    description: str = ""
    deadline: datetime | None = None
    preferred_start_time: datetime | None = None
    category: TaskCategory = "other"
    priority: TaskPriority = "medium"

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive: {self.duration_minutes}")
        if self.duration_minutes > MAX_DURATION_MINUTES:
            raise ValueError(f"duration_minutes exceeds one week: {self.duration_minutes}")

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class Placed:
    start: datetime
    end: datetime
    reason: PlacementReason

    @property
    def slot_found(self) -> bool:
        return True


@dataclass(frozen=True)
class NoSlotFound:
    """No placement was made within the search horizon.

    There is no start/end here; `placeholder_end` exists for display only.
    """

    now: datetime
    duration_minutes: int

    @property
    def slot_found(self) -> bool:
        return False

    def placeholder_end(self) -> datetime:
        return self.now + timedelta(minutes=self.duration_minutes)


ScheduleResult = Placed | NoSlotFound
