from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from slotcal.civil_time import (
    JST,
    add_days,
    at_local_time,
    ceil_to_minutes,
    date_key,
    end_of_day,
    fixed_offset_timezone,
    format_date,
    format_date_full,
    format_section_date,
    format_time,
    is_same_day,
    parse_instant,
    start_of_day,
    to_fixed_offset_iso,
    to_local,
)


def test_date_key_uses_local_civil_date_not_utc() -> None:
    instant = datetime(2026, 2, 13, 16, 30, tzinfo=UTC)

    assert date_key(instant) == "2026-02-14"


def test_naive_datetime_is_treated_as_local() -> None:
    naive = datetime(2026, 2, 14, 9, 0)

    local = to_local(naive)

    assert local.tzinfo is JST
    assert local.hour == 9


@pytest.mark.parametrize(
    ("start", "days", "expected"),
    [
        (datetime(2026, 1, 31, 23, 0, tzinfo=JST), 1, "2026-02-01"),
        (datetime(2026, 12, 31, 8, 0, tzinfo=JST), 1, "2027-01-01"),
        (datetime(2028, 2, 28, 12, 0, tzinfo=JST), 1, "2028-02-29"),
        (datetime(2026, 3, 1, 0, 0, tzinfo=JST), -1, "2026-02-28"),
    ],
)
def test_add_days_moves_across_month_and_year_ends(
    start: datetime, days: int, expected: str
) -> None:
    moved = add_days(start, days)

    assert date_key(moved) == expected
    assert moved.hour == 0 and moved.minute == 0


def test_day_keys_increase_without_gaps_over_a_year() -> None:
    base = datetime(2026, 12, 20, 18, 0, tzinfo=JST)
    previous = date.fromisoformat(date_key(base))

    for offset in range(1, 40):
        current = date.fromisoformat(date_key(add_days(base, offset)))
        assert current - previous == timedelta(days=1)
        previous = current


def test_start_and_end_of_day_bracket_instant() -> None:
    instant = datetime(2026, 2, 14, 13, 45, 12, tzinfo=JST)

    assert start_of_day(instant) == datetime(2026, 2, 14, tzinfo=JST)
    assert end_of_day(instant) == datetime(2026, 2, 14, 23, 59, 59, 999_000, tzinfo=JST)
    assert start_of_day(instant) <= instant <= end_of_day(instant)


def test_is_same_day_compares_local_dates() -> None:
    late_utc = datetime(2026, 2, 13, 15, 30, tzinfo=UTC)  # 00:30 JST on 2/14
    morning = datetime(2026, 2, 14, 8, 0, tzinfo=JST)

    assert is_same_day(late_utc, morning)
    assert not is_same_day(late_utc, morning - timedelta(days=1))


def test_at_local_time_accepts_hour_24() -> None:
    assert at_local_time(date(2026, 2, 14), 24) == datetime(2026, 2, 15, tzinfo=JST)
    assert at_local_time(date(2026, 2, 14), 9, 30) == datetime(2026, 2, 14, 9, 30, tzinfo=JST)


def test_to_fixed_offset_iso_has_explicit_offset() -> None:
    instant = datetime(2026, 2, 14, 0, 0, 30, 123456, tzinfo=UTC)

    assert to_fixed_offset_iso(instant) == "2026-02-14T09:00:30+09:00"


def test_parse_instant_accepts_z_and_naive_values() -> None:
    assert parse_instant("2026-02-14T00:00:00Z") == datetime(2026, 2, 14, 9, 0, tzinfo=JST)
    assert parse_instant("2026-02-14T09:00:00") == datetime(2026, 2, 14, 9, 0, tzinfo=JST)
    assert parse_instant("not a date") is None
    assert parse_instant("   ") is None


def test_ceil_to_minutes_rounds_up_to_boundary() -> None:
    base = datetime(2026, 2, 14, 10, 7, 30, tzinfo=JST)

    assert ceil_to_minutes(base, 15) == datetime(2026, 2, 14, 10, 15, tzinfo=JST)
    assert ceil_to_minutes(datetime(2026, 2, 14, 10, 50, 1, tzinfo=JST), 15) == datetime(
        2026, 2, 14, 11, 0, tzinfo=JST
    )
    exact = datetime(2026, 2, 14, 10, 30, tzinfo=JST)
    assert ceil_to_minutes(exact, 15) == exact


def test_fixed_offset_timezone_supports_fractional_hours() -> None:
    tz = fixed_offset_timezone(5.5, "IST")

    assert tz.utcoffset(None) == timedelta(hours=5, minutes=30)
    assert tz.tzname(None) == "IST"


def test_display_formats() -> None:
    instant = datetime(2026, 2, 14, 14, 30, tzinfo=JST)

    assert format_time(instant) == "14:30"
    assert format_date(instant) == "2/14(土)"
    assert format_date_full(instant) == "2026/2/14(土)"
    assert format_section_date("2026-02-16") == "2/16(月)"
