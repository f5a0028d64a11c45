"""
Calendar helpers: 'today' in the user's timezone, natural-language date/time parsing,
display formatting and date ranges. All dates are ISO strings (YYYY-MM-DD).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("date_utils")

# Already ISO date
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_RELATIVE = re.compile(r"^\+(\d+)([dw])$")
_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{4}))?$")
_MONTH_DAY = re.compile(r"^([a-z]+)\s+(\d{1,2})(?:,?\s+(\d{4}))?$")
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$")

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WEEKDAY_CODES = [d[:3] for d in WEEKDAYS]
MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]


class ParseError(ValueError):
    """A date or time string could not be understood."""


@dataclass(frozen=True)
class DateContext:
    """
    Everything date-relative code needs to know about "now": the user's timezone and,
    for tests or reproducible runs, an optional pinned today.
    """

    tz_name: str = "UTC"
    fixed_today: date | None = None

    @classmethod
    def from_config(cls) -> "DateContext":
        from config import load as load_config

        return cls(tz_name=load_config().user_timezone)

    @property
    def tz(self) -> ZoneInfo:
        name = (self.tz_name or "").strip() or "UTC"
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, using UTC", name)
            return ZoneInfo("UTC")

    def today(self) -> date:
        if self.fixed_today is not None:
            return self.fixed_today
        return datetime.now(self.tz).date()


def _ctx(ctx: DateContext | None) -> DateContext:
    return ctx if ctx is not None else DateContext.from_config()


def to_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def today(ctx: DateContext | None = None) -> str:
    return _ctx(ctx).today().isoformat()


def tomorrow(ctx: DateContext | None = None) -> str:
    return days_from_now(1, ctx)


def days_from_now(n: int, ctx: DateContext | None = None) -> str:
    """Date n days from today (n may be negative)."""
    return (_ctx(ctx).today() + timedelta(days=n)).isoformat()


def _valid_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_number(name: str) -> int | None:
    for i, month in enumerate(MONTHS, start=1):
        if name == month or (len(name) == 3 and month.startswith(name)):
            return i
    return None


def weekday_index(name: str) -> int | None:
    """0=Monday for a full or 3-letter weekday name, else None."""
    name = name.strip().lower()
    if name in WEEKDAYS:
        return WEEKDAYS.index(name)
    if name in WEEKDAY_CODES:
        return WEEKDAY_CODES.index(name)
    return None


def weekday_code(day: str | date) -> str:
    """'mon' .. 'sun'."""
    return WEEKDAY_CODES[to_date(day).weekday()]


def parse_date(value: str | None, ctx: DateContext | None = None) -> str | None:
    """
    Convert user input to YYYY-MM-DD, or None if not understood. Case-insensitive.
    Supports: today, tomorrow, weekday names (next occurrence strictly after today),
    'next <weekday>' (one week later still), +Nd, +Nw, YYYY-MM-DD, M/D[/YYYY],
    '<month> D[, YYYY]'.
    """
    if not value or not str(value).strip():
        return None
    raw = " ".join(str(value).strip().lower().split())
    ref = _ctx(ctx).today()
    if raw == "today":
        return ref.isoformat()
    if raw == "tomorrow":
        return (ref + timedelta(days=1)).isoformat()
    m = _RELATIVE.match(raw)
    if m:
        n = int(m.group(1))
        days = n * 7 if m.group(2) == "w" else n
        return (ref + timedelta(days=days)).isoformat()
    extra_week = False
    name = raw
    if raw.startswith("next "):
        extra_week = True
        name = raw[5:].strip()
    target = weekday_index(name)
    if target is not None:
        days_ahead = (target - ref.weekday()) % 7
        if days_ahead == 0:
            days_ahead = 7  # naming today's weekday means next week's
        if extra_week:
            days_ahead += 7
        return (ref + timedelta(days=days_ahead)).isoformat()
    if extra_week:
        return None
    m = _ISO_DATE.match(raw)
    if m:
        return _valid_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _US_DATE.match(raw)
    if m:
        year = int(m.group(3)) if m.group(3) else ref.year
        return _valid_date(year, int(m.group(1)), int(m.group(2)))
    m = _MONTH_DAY.match(raw)
    if m:
        month = _month_number(m.group(1))
        if month is None:
            return None
        year = int(m.group(3)) if m.group(3) else ref.year
        return _valid_date(year, month, int(m.group(2)))
    return None


def require_date(value: str | None, ctx: DateContext | None = None) -> str:
    """parse_date that raises ParseError instead of returning None."""
    parsed = parse_date(value, ctx)
    if parsed is None:
        raise ParseError(f"Could not parse date: {value}")
    return parsed


def parse_time(value: str | None) -> str | None:
    """'14:30', '9:05', '2pm', '2:30 pm' -> HH:MM (24h), or None."""
    if not value or not str(value).strip():
        return None
    raw = str(value).strip().lower()
    m = _TIME_24H.match(raw)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            return None
        return f"{hour:02d}:{minute:02d}"
    m = _TIME_12H.match(raw)
    if m:
        hour = int(m.group(1))
        minute = int(m.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            return None
        if m.group(3) == "pm" and hour != 12:
            hour += 12
        elif m.group(3) == "am" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minute:02d}"
    return None


def require_time(value: str | None) -> str:
    parsed = parse_time(value)
    if parsed is None:
        raise ParseError(f"Could not parse time: {value}")
    return parsed


def format_date(iso: str, ctx: DateContext | None = None) -> str:
    """'Today', 'Tomorrow', else e.g. 'Mon, Feb 16'."""
    ref = _ctx(ctx).today()
    d = to_date(iso)
    if d == ref:
        return "Today"
    if d == ref + timedelta(days=1):
        return "Tomorrow"
    return f"{WEEKDAYS[d.weekday()][:3].title()}, {MONTHS[d.month - 1][:3].title()} {d.day}"


def format_time(hhmm: str) -> str:
    """'14:30' -> '2:30pm', '09:00' -> '9am'."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    suffix = "pm" if hour >= 12 else "am"
    hour12 = hour % 12 or 12
    if minute:
        return f"{hour12}:{minute:02d}{suffix}"
    return f"{hour12}{suffix}"


def date_range(start: str | date, count: int) -> list[str]:
    """count consecutive ISO dates beginning at start (empty for count <= 0)."""
    first = to_date(start)
    return [(first + timedelta(days=i)).isoformat() for i in range(max(count, 0))]


def days_between(start: str | date, end: str | date) -> int:
    return (to_date(end) - to_date(start)).days


def months_between(start: str | date, end: str | date) -> int:
    a, b = to_date(start), to_date(end)
    return (b.year - a.year) * 12 + (b.month - a.month)
