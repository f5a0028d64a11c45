"""
Task Service layer: all task mutations go through here.
Placement (dated / soon / someday / inbox) only changes through create and the move_* functions.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Iterable

from database import get_connection, init_database

logger = logging.getLogger("task_service")

PRIORITY_MIN, PRIORITY_MAX = 0, 2
PRIORITY_NAMES = {"normal": 0, "high": 1, "urgent": 2}
PLACEMENTS = frozenset({"dated", "soon", "someday", "inbox"})
UNDATED_PLACEMENTS = frozenset({"soon", "someday", "inbox"})
# Older data used these tag values instead of a placement
RESERVED_TAGS = ("soon", "someday")

# Sentinel: pass for optional params to mean "don't change"; None means "set to null"
_UNSET = object()

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_tags(value: str | Iterable[str] | None) -> list[str]:
    """Comma-separated string or iterable -> unique, lowercase, trimmed tags (order kept)."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else list(value)
    out: list[str] = []
    for part in parts:
        tag = str(part).strip().lstrip("#").strip().lower()
        if tag and tag not in out:
            out.append(tag)
    return out


def format_tags(tags: Iterable[str]) -> str:
    """Storage form: comma-joined."""
    return ",".join(tags)


def _validate_tags(tags: list[str]) -> None:
    for tag in tags:
        if "," in tag:
            raise ValueError(f"Tag may not contain a comma: {tag}")


def _validate_priority(priority: int) -> None:
    if not isinstance(priority, int) or priority < PRIORITY_MIN or priority > PRIORITY_MAX:
        raise ValueError(f"priority must be {PRIORITY_MIN}-{PRIORITY_MAX}")


def _validate_title(title: str | None) -> str:
    if not title or not title.strip():
        raise ValueError("title is required")
    return title.strip()


def check_date(value: str | None) -> str | None:
    """Raise ValueError unless value is None or a real YYYY-MM-DD date."""
    if value is None:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError) as e:
        raise ValueError(f"date must be YYYY-MM-DD: {value}") from e


def check_time(value: str | None) -> str | None:
    """Raise ValueError unless value is None or HH:MM (24h)."""
    if value is None:
        return None
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError(f"time must be HH:MM: {value}")
    return value


def _split_reserved(tags: list[str]) -> tuple[list[str], str | None]:
    """Strip soon/someday from a tag list; return (tags, placement they ask for)."""
    asked = [t for t in RESERVED_TAGS if t in tags]
    if len(asked) > 1:
        raise ValueError("A task cannot be both soon and someday")
    return [t for t in tags if t not in RESERVED_TAGS], (asked[0] if asked else None)


def _task_row_to_dict(row: Any) -> dict[str, Any]:
    d = dict(row)
    d["tags"] = parse_tags(d.get("tags") or "")
    return d


def ensure_db() -> None:
    """Bootstrap database on first run."""
    init_database()


def _fetch(conn: sqlite3.Connection, task_id: int) -> sqlite3.Row | None:
    return conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()


def create_task(
    title: str,
    *,
    description: str | None = None,
    due_date: str | None = None,
    due_time: str | None = None,
    tags: str | Iterable[str] | None = None,
    project: str | None = None,
    priority: int = 0,
    placement: str | None = None,
) -> dict[str, Any]:
    """
    Create a single task. With a due_date the task is 'dated'; otherwise placement is the
    one given, or taken from a legacy 'soon'/'someday' tag, or 'inbox'.
    """
    title = _validate_title(title)
    _validate_priority(priority)
    due_date = check_date(due_date)
    due_time = check_time(due_time)
    if due_time and not due_date:
        raise ValueError("A due time requires a due date")
    tag_list, asked = _split_reserved(parse_tags(tags))
    _validate_tags(tag_list)
    if placement is not None and placement not in PLACEMENTS:
        raise ValueError(f"placement must be one of {sorted(PLACEMENTS)}")
    if due_date:
        if placement not in (None, "dated"):
            raise ValueError("A task with a due date cannot be placed in " + placement)
        placement = "dated"
    else:
        if placement == "dated":
            raise ValueError("placement 'dated' requires a due date")
        placement = placement or asked or "inbox"
    now = _now_iso()
    conn = get_connection()
    try:
        cur = conn.execute(
            """INSERT INTO tasks (
                title, description, due_date, due_time, tags, project, priority,
                placement, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                title, description or None, due_date, due_time, format_tags(tag_list),
                project or None, priority, placement, now, now,
            ),
        )
        task_id = cur.lastrowid
        conn.commit()
        logger.debug("[task_service] created task %s (%s)", task_id, placement)
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def get_task(task_id: int) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        return _task_row_to_dict(row) if row else None
    finally:
        conn.close()


def update_task(
    task_id: int,
    *,
    title: str | None = _UNSET,
    description: str | None = _UNSET,
    due_date: str | None = _UNSET,
    due_time: str | None = _UNSET,
    tags: str | Iterable[str] | None = _UNSET,
    project: str | None = _UNSET,
    priority: int = _UNSET,
) -> dict[str, Any] | None:
    """Update task fields. Only provided fields are changed (pass nothing / _UNSET to leave one alone).
    Setting due_date moves the task to 'dated'; clearing it sends the task to the inbox and drops the time."""
    if title is not _UNSET:
        title = _validate_title(title)
    if priority is not _UNSET:
        _validate_priority(priority)
    if due_date is not _UNSET:
        due_date = check_date(due_date)
    if due_time is not _UNSET:
        due_time = check_time(due_time)
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        if not row:
            return None
        eff_due = due_date if due_date is not _UNSET else row["due_date"]
        eff_time = due_time if due_time is not _UNSET else row["due_time"]
        if eff_due is None and due_date is not _UNSET:
            eff_time = None
        if eff_time and not eff_due:
            raise ValueError("A due time requires a due date")
        placement = row["placement"]
        if eff_due:
            placement = "dated"
        elif placement == "dated":
            placement = "inbox"
        updates: list[str] = ["updated_at = ?", "due_date = ?", "due_time = ?", "placement = ?"]
        params: list[Any] = [_now_iso(), eff_due, eff_time, placement]
        if title is not _UNSET:
            updates.append("title = ?"); params.append(title)
        if description is not _UNSET:
            updates.append("description = ?"); params.append(description or None)
        if project is not _UNSET:
            updates.append("project = ?"); params.append(project or None)
        if priority is not _UNSET:
            updates.append("priority = ?"); params.append(priority)
        if tags is not _UNSET:
            tag_list, asked = _split_reserved(parse_tags(tags))
            _validate_tags(tag_list)
            if asked and not eff_due:
                params[3] = asked
            updates.append("tags = ?"); params.append(format_tags(tag_list))
        params.append(task_id)
        conn.execute(f"UPDATE tasks SET {', '.join(updates)} WHERE id = ?", params)
        conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def complete_task(task_id: int) -> dict[str, Any] | None:
    """Mark complete. Completing an already completed task keeps its original completed_at."""
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        if not row:
            return None
        if row["completed_at"] is None:
            now = _now_iso()
            conn.execute(
                "UPDATE tasks SET completed_at = ?, updated_at = ? WHERE id = ?",
                (now, now, task_id),
            )
            conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def reopen_task(task_id: int) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        if not _fetch(conn, task_id):
            return None
        conn.execute(
            "UPDATE tasks SET completed_at = NULL, updated_at = ? WHERE id = ?",
            (_now_iso(), task_id),
        )
        conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def delete_task(task_id: int) -> bool:
    """Delete a task. Returns True if deleted, False if not found."""
    conn = get_connection()
    try:
        cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()
        if cur.rowcount:
            logger.info("[task_service] deleted task %s", task_id)
        return cur.rowcount > 0
    finally:
        conn.close()


def move_to_date(task_id: int, due_date: str, due_time: str | None = None) -> dict[str, Any] | None:
    """Give the task a due date (and optional time; omitted clears the time). Resets the reminder."""
    due_date = check_date(due_date)
    if not due_date:
        raise ValueError("due_date is required")
    due_time = check_time(due_time)
    return _move(task_id, "dated", due_date, due_time)


def move_to_soon(task_id: int) -> dict[str, Any] | None:
    return _move(task_id, "soon")


def move_to_someday(task_id: int) -> dict[str, Any] | None:
    return _move(task_id, "someday")


def move_to_inbox(task_id: int) -> dict[str, Any] | None:
    return _move(task_id, "inbox")


def _move(
    task_id: int,
    placement: str,
    due_date: str | None = None,
    due_time: str | None = None,
) -> dict[str, Any] | None:
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        if not row:
            return None
        tag_list, _ = _split_reserved(parse_tags(row["tags"]))
        conn.execute(
            """UPDATE tasks SET placement = ?, due_date = ?, due_time = ?, tags = ?,
                   reminded_at = NULL, updated_at = ?
               WHERE id = ?""",
            (placement, due_date, due_time, format_tags(tag_list), _now_iso(), task_id),
        )
        conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def mark_reminded(task_id: int) -> bool:
    conn = get_connection()
    try:
        cur = conn.execute(
            "UPDATE tasks SET reminded_at = ? WHERE id = ?",
            (_now_iso(), task_id),
        )
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


def add_tags(task_id: int, new_tags: str | Iterable[str]) -> dict[str, Any] | None:
    """Add tags. 'soon'/'someday' move an undated task instead of being stored."""
    incoming, asked = _split_reserved(parse_tags(new_tags))
    _validate_tags(incoming)
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        if not row:
            return None
        tag_list = parse_tags(row["tags"])
        tag_list += [t for t in incoming if t not in tag_list]
        placement = row["placement"]
        if asked and placement != "dated":
            placement = asked
        conn.execute(
            "UPDATE tasks SET tags = ?, placement = ?, updated_at = ? WHERE id = ?",
            (format_tags(tag_list), placement, _now_iso(), task_id),
        )
        conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def remove_tags(task_id: int, tags: str | Iterable[str]) -> dict[str, Any] | None:
    drop = set(parse_tags(tags))
    conn = get_connection()
    try:
        row = _fetch(conn, task_id)
        if not row:
            return None
        tag_list = [t for t in parse_tags(row["tags"]) if t not in drop]
        conn.execute(
            "UPDATE tasks SET tags = ?, updated_at = ? WHERE id = ?",
            (format_tags(tag_list), _now_iso(), task_id),
        )
        conn.commit()
        return _task_row_to_dict(_fetch(conn, task_id))
    finally:
        conn.close()


def count_tasks(*, include_completed: bool = True) -> int:
    conn = get_connection()
    try:
        sql = "SELECT COUNT(*) FROM tasks"
        if not include_completed:
            sql += " WHERE completed_at IS NULL"
        return conn.execute(sql).fetchone()[0]
    finally:
        conn.close()
