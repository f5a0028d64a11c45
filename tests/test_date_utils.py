# tests/test_date_utils.py

from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest

from date_utils import (
    DateContext,
    ParseError,
    date_range,
    days_from_now,
    format_date,
    format_time,
    months_between,
    parse_date,
    parse_time,
    require_date,
    today,
    tomorrow,
    weekday_code,
)


def test_today_tomorrow_and_offsets(ctx) -> None:
    assert today(ctx) == "2026-02-15"
    assert tomorrow(ctx) == "2026-02-16"
    assert days_from_now(-1, ctx) == "2026-02-14"
    assert days_from_now(20, ctx) == "2026-03-07"


def test_today_follows_timezone() -> None:
    # UTC+14 and UTC-11 are 25 hours apart, so their dates always differ
    east = DateContext(tz_name="Pacific/Kiritimati").today()
    west = DateContext(tz_name="Pacific/Pago_Pago").today()
    assert east > west


def test_unknown_timezone_falls_back_to_utc() -> None:
    assert DateContext(tz_name="Not/AZone").tz == ZoneInfo("UTC")


def test_context_from_config_reads_timezone(home) -> None:
    from config import AppConfig

    AppConfig(user_timezone="Europe/Berlin").save()
    assert DateContext.from_config().tz_name == "Europe/Berlin"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("today", "2026-02-15"),
        ("TOMORROW", "2026-02-16"),
        ("monday", "2026-02-16"),
        ("Wed", "2026-02-18"),
        ("sunday", "2026-02-22"),  # today's weekday means next week
        ("next monday", "2026-02-23"),
        ("next sun", "2026-03-01"),
        ("+3d", "2026-02-18"),
        ("+2w", "2026-03-01"),
        ("2026-03-01", "2026-03-01"),
        ("3/1", "2026-03-01"),
        ("12/25/2027", "2027-12-25"),
        ("mar 1", "2026-03-01"),
        ("March 1, 2027", "2027-03-01"),
        ("december 24 2026", "2026-12-24"),
    ],
)
def test_parse_date_accepts(ctx, text: str, expected: str) -> None:
    assert parse_date(text, ctx) == expected


@pytest.mark.parametrize(
    "text",
    ["", "   ", "someday", "next", "next week", "2/30", "2026-02-30", "13/1", "smarch 3", "+d", "in 3 days"],
)
def test_parse_date_rejects(ctx, text: str) -> None:
    assert parse_date(text, ctx) is None


def test_require_date_raises_parse_error(ctx) -> None:
    with pytest.raises(ParseError):
        require_date("whenever", ctx)
    # ParseError is a ValueError so callers can catch both the same way
    assert issubclass(ParseError, ValueError)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("14:30", "14:30"),
        ("9:05", "09:05"),
        ("2pm", "14:00"),
        ("2:30 PM", "14:30"),
        ("12am", "00:00"),
        ("12pm", "12:00"),
        ("11:59pm", "23:59"),
        ("25:00", None),
        ("13pm", None),
        ("0am", None),
        ("noon", None),
        ("", None),
    ],
)
def test_parse_time(text: str, expected: str | None) -> None:
    assert parse_time(text) == expected


def test_format_date(ctx) -> None:
    assert format_date("2026-02-15", ctx) == "Today"
    assert format_date("2026-02-16", ctx) == "Tomorrow"
    assert format_date("2026-02-17", ctx) == "Tue, Feb 17"
    assert format_date("2026-02-14", ctx) == "Sat, Feb 14"


def test_format_time() -> None:
    assert format_time("14:30") == "2:30pm"
    assert format_time("14:00") == "2pm"
    assert format_time("09:00") == "9am"
    assert format_time("00:15") == "12:15am"


def test_date_range_crosses_month_end() -> None:
    assert date_range("2026-02-27", 3) == ["2026-02-27", "2026-02-28", "2026-03-01"]
    assert date_range("2026-02-27", 0) == []


def test_calendar_arithmetic() -> None:
    assert months_between("2026-01-31", "2027-03-01") == 14
    assert weekday_code("2026-02-15") == "sun"
