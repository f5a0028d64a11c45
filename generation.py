"""
Generate task occurrences from recurring templates over a bounded horizon.

Generation is idempotent: each (template, date) pair is materialized at most once, enforced by a
unique index and a conflict-tolerant insert, so repeated or concurrent runs never duplicate tasks.
The template's last_generated marker is informational; every run rescans the whole window.
"""
from __future__ import annotations

import logging
from typing import Any

from database import get_connection
from date_utils import DateContext, date_range, days_from_now
from recurrence import matches
from task_service import _now_iso, _task_row_to_dict, delete_task, format_tags
from template_service import _fetch as _fetch_template
from template_service import _template_row_to_dict, list_templates, update_last_generated

logger = logging.getLogger("generation")

DEFAULT_HORIZON_DAYS = 14
MAX_HORIZON_DAYS = 366

_INSERT_OCCURRENCE = """
    INSERT INTO tasks (
        title, description, due_date, due_time, tags, project, priority,
        placement, created_at, updated_at, template_id, occurrence_date
    ) VALUES (?, ?, ?, ?, ?, ?, ?, 'dated', ?, ?, ?, ?)
    ON CONFLICT(template_id, occurrence_date) DO NOTHING
"""


def _check_horizon(horizon_days: int) -> None:
    if not isinstance(horizon_days, int) or not 1 <= horizon_days <= MAX_HORIZON_DAYS:
        raise ValueError(f"horizon must be 1-{MAX_HORIZON_DAYS} days")


def generate_for_template(
    template_id: int,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    *,
    ctx: DateContext | None = None,
) -> list[dict[str, Any]]:
    """
    Create the occurrences a template is due for in [today, today + horizon_days - 1] that do not
    exist yet. Returns the created tasks (empty for unknown or disabled templates).
    Runs as one transaction: the inserts and the last_generated update commit together.
    """
    _check_horizon(horizon_days)
    ctx = ctx or DateContext.from_config()
    window = date_range(ctx.today(), horizon_days)
    conn = get_connection()
    try:
        row = _fetch_template(conn, template_id)
        if not row:
            return []
        template = _template_row_to_dict(row)
        if not template["enabled"]:
            return []
        now = _now_iso()
        created_ids: list[int] = []
        last_created: str | None = None
        for day in window:
            if not matches(day, template):
                continue
            cur = conn.execute(
                _INSERT_OCCURRENCE,
                (
                    template["title"], template["description"], day, template["due_time"],
                    format_tags(template["tags"]), template["project"], template["priority"],
                    now, now, template_id, day,
                ),
            )
            if cur.rowcount == 1:
                created_ids.append(cur.lastrowid)
                last_created = day
        if last_created:
            update_last_generated(conn, template_id, last_created)
        conn.commit()
        logger.debug("[generation] template %s: %d new occurrences", template_id, len(created_ids))
        return [
            _task_row_to_dict(conn.execute("SELECT * FROM tasks WHERE id = ?", (tid,)).fetchone())
            for tid in created_ids
        ]
    finally:
        conn.close()


def generate_all(
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    *,
    ctx: DateContext | None = None,
) -> dict[str, Any]:
    """
    Run generation for every enabled template. A failing template is logged and reported in
    templatesFailed; the others still run (each commits on its own).
    """
    _check_horizon(horizon_days)
    ctx = ctx or DateContext.from_config()
    processed = 0
    created = 0
    failed: list[int] = []
    for template in list_templates():
        try:
            tasks = generate_for_template(template["id"], horizon_days, ctx=ctx)
        except Exception:
            logger.exception("[generation] template %s (%s) failed", template["id"], template["title"])
            failed.append(template["id"])
            continue
        processed += 1
        created += len(tasks)
    logger.info("[generation] generated %d tasks from %d templates", created, processed)
    return {"templatesProcessed": processed, "tasksCreated": created, "templatesFailed": failed}


def get_tasks_for_template(template_id: int, *, include_completed: bool = True) -> list[dict[str, Any]]:
    """Occurrences created from a template, by due date."""
    conn = get_connection()
    try:
        sql = "SELECT * FROM tasks WHERE template_id = ?"
        if not include_completed:
            sql += " AND completed_at IS NULL"
        sql += " ORDER BY due_date IS NULL, due_date, due_time, id"
        return [_task_row_to_dict(r) for r in conn.execute(sql, (template_id,)).fetchall()]
    finally:
        conn.close()


def get_upcoming_recurring(days: int = 7, *, ctx: DateContext | None = None) -> list[dict[str, Any]]:
    """Active template occurrences due from today through the next days - 1 days."""
    ctx = ctx or DateContext.from_config()
    start = days_from_now(0, ctx)
    end = days_from_now(max(days, 1) - 1, ctx)
    conn = get_connection()
    try:
        rows = conn.execute(
            """SELECT * FROM tasks
               WHERE template_id IS NOT NULL AND completed_at IS NULL
                 AND due_date >= ? AND due_date <= ?
               ORDER BY due_date, due_time, id""",
            (start, end),
        ).fetchall()
        return [_task_row_to_dict(r) for r in rows]
    finally:
        conn.close()


def skip_task(task_id: int) -> bool:
    """Skip one occurrence by deleting it. A later run re-creates it if its date is still in the window."""
    deleted = delete_task(task_id)
    if deleted:
        logger.info("[generation] skipped task %s", task_id)
    return deleted
