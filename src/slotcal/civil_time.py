from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

JST = timezone(timedelta(hours=9), "JST")

_WEEKDAY_LABELS = ("月", "火", "水", "木", "金", "土", "日")


def fixed_offset_timezone(offset_hours: float, name: str | None = None) -> timezone:
    offset = timedelta(minutes=round(offset_hours * 60))
    if name:
        return timezone(offset, name)
    return timezone(offset)


def to_local(instant: datetime, *, tz: tzinfo = JST) -> datetime:
    """Return `instant` as civil time in `tz`.

    Naive datetimes are taken to already be civil time in `tz`.
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def local_date(instant: datetime, *, tz: tzinfo = JST) -> date:
    return to_local(instant, tz=tz).date()


def date_key(instant: datetime, *, tz: tzinfo = JST) -> str:
    return local_date(instant, tz=tz).isoformat()


def is_same_day(a: datetime, b: datetime, *, tz: tzinfo = JST) -> bool:
    return date_key(a, tz=tz) == date_key(b, tz=tz)


def start_of_day(instant: datetime, *, tz: tzinfo = JST) -> datetime:
    return datetime.combine(local_date(instant, tz=tz), time.min, tzinfo=tz)


def end_of_day(instant: datetime, *, tz: tzinfo = JST) -> datetime:
    return datetime.combine(local_date(instant, tz=tz), time(23, 59, 59, 999_000), tzinfo=tz)


def add_days(instant: datetime, days: int, *, tz: tzinfo = JST) -> datetime:
    """Move `days` civil days from the day containing `instant`.

    The result is local midnight of the target date. Arithmetic happens on the
    calendar date, never on elapsed seconds.
    """
    target = local_date(instant, tz=tz) + timedelta(days=days)
    return datetime.combine(target, time.min, tzinfo=tz)


def at_local_time(day: date, hour: int, minute: int = 0, *, tz: tzinfo = JST) -> datetime:
    """Instant for a wall-clock time on a civil date. Hour 24 is the next midnight."""
    midnight = datetime.combine(day, time.min, tzinfo=tz)
    return midnight + timedelta(hours=hour, minutes=minute)


def to_fixed_offset_iso(instant: datetime, *, tz: tzinfo = JST) -> str:
    """Serialize as YYYY-MM-DDTHH:MM:SS+HH:MM in the fixed local offset."""
    local = to_local(instant, tz=tz).replace(microsecond=0)
    return local.isoformat(timespec="seconds")


def parse_instant(value: str, *, tz: tzinfo = JST) -> datetime | None:
    normalized = value.strip()
    if not normalized:
        return None
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return to_local(parsed, tz=tz)


def ceil_to_minutes(instant: datetime, minutes: int) -> datetime:
    """Round up to the next multiple of `minutes` past the hour."""
    step = timedelta(minutes=minutes)
    hour_start = instant.replace(minute=0, second=0, microsecond=0)
    remainder = (instant - hour_start) % step
    if not remainder:
        return instant
    return instant + (step - remainder)


def format_time(instant: datetime, *, tz: tzinfo = JST) -> str:
    return to_local(instant, tz=tz).strftime("%H:%M")


def format_date(instant: datetime, *, tz: tzinfo = JST) -> str:
    local = to_local(instant, tz=tz)
    return f"{local.month}/{local.day}({_WEEKDAY_LABELS[local.weekday()]})"


def format_date_full(instant: datetime, *, tz: tzinfo = JST) -> str:
    local = to_local(instant, tz=tz)
    return f"{local.year}/{local.month}/{local.day}({_WEEKDAY_LABELS[local.weekday()]})"


def format_section_date(key: str, *, tz: tzinfo = JST) -> str:
    day = date.fromisoformat(key)
    return format_date(datetime.combine(day, time.min, tzinfo=tz), tz=tz)
