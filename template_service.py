"""
Template service: CRUD for recurring templates, plus the '--every' descriptor grammar
("day", "2 weeks", "3 months") and display formatting of a template's rule.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any, Iterable

from database import get_connection
from recurrence import RECUR_TYPES, parse_weekdays
from task_service import (
    _UNSET,
    _now_iso,
    _validate_priority,
    _validate_tags,
    _validate_title,
    check_date,
    check_time,
    format_tags,
    parse_tags,
)

logger = logging.getLogger("template_service")

_DESCRIPTOR = re.compile(r"^(?:(\d+)\s*)?(day|week|month|year)s?$", re.IGNORECASE)
_UNIT_TO_TYPE = {"day": "daily", "week": "weekly", "month": "monthly", "year": "yearly"}
_TYPE_TO_UNIT = {v: k for k, v in _UNIT_TO_TYPE.items()}


def parse_recurrence(descriptor: str) -> tuple[str, int]:
    """'2 weeks' -> ('weekly', 2); 'day' -> ('daily', 1). Raises ValueError on anything else."""
    m = _DESCRIPTOR.match((descriptor or "").strip())
    if not m:
        raise ValueError(f"Invalid recurrence: {descriptor!r} (use day, week, month, year or e.g. '2 weeks')")
    interval = int(m.group(1)) if m.group(1) else 1
    if interval < 1:
        raise ValueError("Recurrence interval must be at least 1")
    return _UNIT_TO_TYPE[m.group(2).lower()], interval


def format_recurrence(template: dict[str, Any]) -> str:
    """Human description, e.g. 'Daily', 'Every 2 weeks (Mon, Wed)', 'Monthly (15)'."""
    recur_type = template.get("recur_type")
    interval = int(template.get("recur_interval") or 1)
    if recur_type not in _TYPE_TO_UNIT:
        return str(recur_type)
    base = f"Every {interval} {_TYPE_TO_UNIT[recur_type]}s" if interval > 1 else recur_type.capitalize()
    if recur_type == "weekly" and template.get("recur_days"):
        days = ", ".join(d.capitalize() for d in parse_weekdays(template["recur_days"]))
        return f"{base} ({days})"
    if recur_type == "monthly":
        return f"{base} ({template.get('recur_day_of_month') or 'same day'})"
    return base


def _template_row_to_dict(row: Any) -> dict[str, Any]:
    d = dict(row)
    d["tags"] = parse_tags(d.get("tags") or "")
    d["recur_days"] = parse_weekdays(d["recur_days"]) if d.get("recur_days") else None
    d["enabled"] = bool(d.get("enabled"))
    return d


def _validate_rule(
    recur_type: str,
    recur_interval: int,
    recur_days: list[str] | None,
    recur_day_of_month: int | None,
    start_date: str | None,
    end_date: str | None,
) -> None:
    if recur_type not in RECUR_TYPES:
        raise ValueError(f"recur_type must be one of {sorted(RECUR_TYPES)}")
    if not isinstance(recur_interval, int) or recur_interval < 1:
        raise ValueError("recur_interval must be at least 1")
    if recur_days and recur_type != "weekly":
        raise ValueError("recur_days only applies to weekly templates")
    if recur_day_of_month is not None:
        if recur_type != "monthly":
            raise ValueError("recur_day_of_month only applies to monthly templates")
        if isinstance(recur_day_of_month, bool) or not isinstance(recur_day_of_month, int) or not 1 <= recur_day_of_month <= 31:
            raise ValueError("recur_day_of_month must be 1-31")
    if not start_date:
        raise ValueError("start_date is required")
    if end_date and end_date < start_date:
        raise ValueError("end_date cannot be before start_date")


def _fetch(conn: sqlite3.Connection, template_id: int) -> sqlite3.Row | None:
    return conn.execute("SELECT * FROM recurring_templates WHERE id = ?", (template_id,)).fetchone()


def create_template(
    title: str,
    *,
    recur_type: str,
    start_date: str,
    recur_interval: int = 1,
    recur_days: str | Iterable[str] | None = None,
    recur_day_of_month: int | None = None,
    end_date: str | None = None,
    description: str | None = None,
    due_time: str | None = None,
    tags: str | Iterable[str] | None = None,
    project: str | None = None,
    priority: int = 0,
    enabled: bool = True,
) -> dict[str, Any]:
    """Create a recurring template. Occurrences only appear once generation runs."""
    title = _validate_title(title)
    _validate_priority(priority)
    start_date = check_date(start_date)
    end_date = check_date(end_date)
    due_time = check_time(due_time)
    days = parse_weekdays(recur_days) or None
    _validate_rule(recur_type, recur_interval, days, recur_day_of_month, start_date, end_date)
    tag_list = parse_tags(tags)
    _validate_tags(tag_list)
    now = _now_iso()
    conn = get_connection()
    try:
        cur = conn.execute(
            """INSERT INTO recurring_templates (
                title, description, due_time, tags, project, priority,
                recur_type, recur_interval, recur_days, recur_day_of_month,
                start_date, end_date, enabled, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                title, description or None, due_time, format_tags(tag_list), project or None, priority,
                recur_type, recur_interval, format_tags(days) if days else None, recur_day_of_month,
                start_date, end_date, 1 if enabled else 0, now, now,
            ),
        )
        template_id = cur.lastrowid
        conn.commit()
        logger.info("[template_service] created template %s: %s (%s)", template_id, title, recur_type)
        return _template_row_to_dict(_fetch(conn, template_id))
    finally:
        conn.close()


def get_template(template_id: int) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        row = _fetch(conn, template_id)
        return _template_row_to_dict(row) if row else None
    finally:
        conn.close()


def list_templates(*, include_disabled: bool = False) -> list[dict[str, Any]]:
    """Templates ordered by title. Only enabled ones unless include_disabled."""
    conn = get_connection()
    try:
        sql = "SELECT * FROM recurring_templates"
        if not include_disabled:
            sql += " WHERE enabled = 1"
        sql += " ORDER BY title COLLATE NOCASE, id"
        return [_template_row_to_dict(r) for r in conn.execute(sql).fetchall()]
    finally:
        conn.close()


def update_template(
    template_id: int,
    *,
    title: str = _UNSET,
    description: str | None = _UNSET,
    due_time: str | None = _UNSET,
    tags: str | Iterable[str] | None = _UNSET,
    project: str | None = _UNSET,
    priority: int = _UNSET,
    recur_type: str = _UNSET,
    recur_interval: int = _UNSET,
    recur_days: str | Iterable[str] | None = _UNSET,
    recur_day_of_month: int | None = _UNSET,
    start_date: str = _UNSET,
    end_date: str | None = _UNSET,
) -> dict[str, Any] | None:
    """Update template fields; the rule is re-validated as a whole. Existing occurrences are untouched."""
    if title is not _UNSET:
        title = _validate_title(title)
    if priority is not _UNSET:
        _validate_priority(priority)
    if due_time is not _UNSET:
        due_time = check_time(due_time)
    if start_date is not _UNSET:
        start_date = check_date(start_date)
    if end_date is not _UNSET:
        end_date = check_date(end_date)
    if recur_days is not _UNSET:
        recur_days = parse_weekdays(recur_days) or None
    conn = get_connection()
    try:
        row = _fetch(conn, template_id)
        if not row:
            return None
        current = _template_row_to_dict(row)
        fields: dict[str, Any] = {
            "title": title,
            "description": description,
            "due_time": due_time,
            "project": project,
            "priority": priority,
            "recur_type": recur_type,
            "recur_interval": recur_interval,
            "recur_days": recur_days,
            "recur_day_of_month": recur_day_of_month,
            "start_date": start_date,
            "end_date": end_date,
        }
        changed = {k: v for k, v in fields.items() if v is not _UNSET}
        # Switching type drops rule parts that only belonged to the old type
        if "recur_type" in changed:
            if changed["recur_type"] != "weekly":
                changed.setdefault("recur_days", None)
            if changed["recur_type"] != "monthly":
                changed.setdefault("recur_day_of_month", None)
        effective = {**current, **changed}
        _validate_rule(
            effective["recur_type"], effective["recur_interval"], effective["recur_days"],
            effective["recur_day_of_month"], effective["start_date"], effective["end_date"],
        )
        if "recur_days" in changed:
            changed["recur_days"] = format_tags(changed["recur_days"]) if changed["recur_days"] else None
        if tags is not _UNSET:
            tag_list = parse_tags(tags)
            _validate_tags(tag_list)
            changed["tags"] = format_tags(tag_list)
        for key in ("description", "project"):
            if key in changed:
                changed[key] = changed[key] or None
        updates = ["updated_at = ?"] + [f"{k} = ?" for k in changed]
        params: list[Any] = [_now_iso(), *changed.values(), template_id]
        conn.execute(f"UPDATE recurring_templates SET {', '.join(updates)} WHERE id = ?", params)
        conn.commit()
        return _template_row_to_dict(_fetch(conn, template_id))
    finally:
        conn.close()


def _set_enabled(template_id: int, enabled: bool) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        cur = conn.execute(
            "UPDATE recurring_templates SET enabled = ?, updated_at = ? WHERE id = ?",
            (1 if enabled else 0, _now_iso(), template_id),
        )
        conn.commit()
        if not cur.rowcount:
            return None
        logger.info("[template_service] template %s %s", template_id, "enabled" if enabled else "disabled")
        return _template_row_to_dict(_fetch(conn, template_id))
    finally:
        conn.close()


def enable_template(template_id: int) -> dict[str, Any] | None:
    return _set_enabled(template_id, True)


def disable_template(template_id: int) -> dict[str, Any] | None:
    """Disabled templates are skipped by generation; their existing occurrences stay."""
    return _set_enabled(template_id, False)


def delete_template(template_id: int) -> bool:
    """Delete a template. Occurrences keep their (now dangling) template_id."""
    conn = get_connection()
    try:
        cur = conn.execute("DELETE FROM recurring_templates WHERE id = ?", (template_id,))
        conn.commit()
        if cur.rowcount:
            logger.info("[template_service] deleted template %s", template_id)
        return cur.rowcount > 0
    finally:
        conn.close()


def update_last_generated(conn: sqlite3.Connection, template_id: int, last_date: str) -> None:
    """Record the latest generated date. Runs on the caller's connection/transaction; advisory only."""
    conn.execute(
        "UPDATE recurring_templates SET last_generated = ?, updated_at = ? WHERE id = ?",
        (last_date, _now_iso(), template_id),
    )
