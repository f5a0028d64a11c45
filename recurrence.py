"""
Recurrence pattern matching: decide whether a template produces an occurrence on a date.
Pure functions, no database access.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from date_utils import WEEKDAY_CODES, days_between, months_between, to_date, weekday_index

RECUR_TYPES = frozenset({"daily", "weekly", "monthly", "yearly"})


def parse_weekdays(value: str | list[str] | None) -> list[str]:
    """'Mon, wednesday' -> ['mon', 'wed'] (calendar order). Unknown names raise ValueError."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    indexes: set[int] = set()
    for part in parts:
        name = str(part).strip()
        if not name:
            continue
        idx = weekday_index(name)
        if idx is None:
            raise ValueError(f"Unknown weekday: {name}")
        indexes.add(idx)
    return [WEEKDAY_CODES[i] for i in sorted(indexes)]


def _interval(template: Mapping[str, Any]) -> int:
    return max(int(template.get("recur_interval") or 1), 1)


def matches(day: str | date, template: Mapping[str, Any]) -> bool:
    """True if the template's rule produces an occurrence on day."""
    d = to_date(day)
    start = to_date(template["start_date"])
    if d < start:
        return False
    end = template.get("end_date")
    if end and d > to_date(end):
        return False
    interval = _interval(template)
    recur_type = template.get("recur_type")

    if recur_type == "daily":
        return days_between(start, d) % interval == 0

    if recur_type == "weekly":
        recur_days = template.get("recur_days")
        if recur_days and WEEKDAY_CODES[d.weekday()] not in parse_weekdays(recur_days):
            return False
        if interval > 1 and (days_between(start, d) // 7) % interval != 0:
            return False
        return True

    if recur_type == "monthly":
        target = template.get("recur_day_of_month") or start.day
        # No roll-forward: day 31 never fires in a 30-day month
        if d.day != int(target):
            return False
        return interval == 1 or months_between(start, d) % interval == 0

    if recur_type == "yearly":
        if d.month != start.month or d.day != start.day:
            return False
        return interval == 1 or (d.year - start.year) % interval == 0

    return False
