"""
Bucket views over active tasks: overdue, today, future (by date), soon, someday, inbox.
Every active task belongs to exactly one bucket; classify_task/partition_tasks define the
partition and the get_* queries return individual buckets straight from SQL.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from database import get_connection
from date_utils import DateContext, date_range, days_from_now
from task_service import _task_row_to_dict, count_tasks, parse_tags


BUCKETS = ("overdue", "today", "future", "soon", "someday", "inbox")

_ACTIVE = "completed_at IS NULL"
_DATED_ORDER = "ORDER BY due_date IS NULL, due_date ASC, due_time ASC, priority DESC, created_at ASC, id ASC"
_UNDATED_ORDER = "ORDER BY priority DESC, created_at ASC, id ASC"
_INBOX_ORDER = "ORDER BY priority DESC, created_at DESC, id DESC"


def classify_task(task: dict[str, Any], today: str) -> str:
    """Bucket for an active task, relative to today (YYYY-MM-DD)."""
    due = task.get("due_date")
    if due:
        if due < today:
            return "overdue"
        if due == today:
            return "today"
        return "future"
    placement = task.get("placement")
    return placement if placement in ("soon", "someday") else "inbox"


def _dated_key(task: dict[str, Any]) -> tuple:
    # untimed tasks sort before timed ones, like SQL NULLs
    return (task["due_date"] or "", task.get("due_time") or "", -task["priority"], task["created_at"], task["id"])


def _undated_key(task: dict[str, Any]) -> tuple:
    return (-task["priority"], task["created_at"], task["id"])


def _inbox_key(task: dict[str, Any]) -> tuple:
    return (task["priority"], task["created_at"], task["id"])


def partition_tasks(tasks: Iterable[dict[str, Any]], today: str) -> dict[str, Any]:
    """
    Split tasks into buckets. Completed tasks are ignored; every active task lands in exactly one
    bucket. 'future' maps each due date to its tasks.
    """
    out: dict[str, Any] = {name: [] for name in BUCKETS}
    out["future"] = {}
    for task in tasks:
        if task.get("completed_at"):
            continue
        bucket = classify_task(task, today)
        if bucket == "future":
            out["future"].setdefault(task["due_date"], []).append(task)
        else:
            out[bucket].append(task)
    out["overdue"].sort(key=_dated_key)
    out["today"].sort(key=_dated_key)
    out["future"] = {d: sorted(out["future"][d], key=_dated_key) for d in sorted(out["future"])}
    out["soon"].sort(key=_undated_key)
    out["someday"].sort(key=_undated_key)
    out["inbox"].sort(key=_inbox_key, reverse=True)
    return out


def _query(where: str, params: tuple = (), order: str = _DATED_ORDER, limit: int | None = None) -> list[dict[str, Any]]:
    conn = get_connection()
    try:
        sql = f"SELECT * FROM tasks WHERE {where} {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, limit)
        return [_task_row_to_dict(r) for r in conn.execute(sql, params).fetchall()]
    finally:
        conn.close()


def _today(ctx: DateContext | None) -> str:
    return days_from_now(0, ctx or DateContext.from_config())


def get_all_active() -> list[dict[str, Any]]:
    return _query(_ACTIVE)


def get_by_date(day: str) -> list[dict[str, Any]]:
    return _query(f"{_ACTIVE} AND due_date = ?", (day,))


def get_today(ctx: DateContext | None = None) -> list[dict[str, Any]]:
    return get_by_date(_today(ctx))


def get_tomorrow(ctx: DateContext | None = None) -> list[dict[str, Any]]:
    return get_by_date(days_from_now(1, ctx or DateContext.from_config()))


def get_overdue(ctx: DateContext | None = None) -> list[dict[str, Any]]:
    return _query(f"{_ACTIVE} AND due_date < ?", (_today(ctx),))


def get_by_date_range(start: str, end: str) -> list[dict[str, Any]]:
    """Active tasks due from start through end (inclusive)."""
    return _query(f"{_ACTIVE} AND due_date >= ? AND due_date <= ?", (start, end))


def get_this_week(ctx: DateContext | None = None) -> list[dict[str, Any]]:
    ctx = ctx or DateContext.from_config()
    return get_by_date_range(days_from_now(0, ctx), days_from_now(6, ctx))


def get_soon() -> list[dict[str, Any]]:
    return _query(f"{_ACTIVE} AND placement = 'soon'", order=_UNDATED_ORDER)


def get_someday() -> list[dict[str, Any]]:
    return _query(f"{_ACTIVE} AND placement = 'someday'", order=_UNDATED_ORDER)


def get_inbox() -> list[dict[str, Any]]:
    """Undated tasks that are neither soon nor someday, newest first within a priority."""
    return _query(f"{_ACTIVE} AND placement = 'inbox'", order=_INBOX_ORDER)


def get_completed(limit: int = 20) -> list[dict[str, Any]]:
    return _query("completed_at IS NOT NULL", order="ORDER BY completed_at DESC, id DESC", limit=limit)


def get_by_tag(tag: str) -> list[dict[str, Any]]:
    """Active tasks carrying exactly this tag."""
    wanted = parse_tags(tag)
    if not wanted:
        return []
    return _query(f"{_ACTIVE} AND instr(',' || tags || ',', ?) > 0", (f",{wanted[0]},",))


def search(query: str) -> list[dict[str, Any]]:
    """Case-insensitive substring match on title or description; completed tasks last."""
    q = (query or "").strip()
    if not q:
        return []
    like = f"%{q}%"
    return _query(
        "(title LIKE ? OR description LIKE ?)",
        (like, like),
        order="ORDER BY completed_at IS NOT NULL, " + _DATED_ORDER[len("ORDER BY "):],
    )


def _local_date(utc_stamp: str, ctx: DateContext) -> str:
    stamp = datetime.strptime(utc_stamp, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
    return stamp.astimezone(ctx.tz).date().isoformat()


def get_needing_reminder(ctx: DateContext | None = None) -> list[dict[str, Any]]:
    """Active tasks due today or earlier that have not been reminded on today's (local) date."""
    ctx = ctx or DateContext.from_config()
    today = days_from_now(0, ctx)
    due = _query(f"{_ACTIVE} AND due_date <= ?", (today,))
    return [t for t in due if not t.get("reminded_at") or _local_date(t["reminded_at"], ctx) < today]


def get_buckets(ctx: DateContext | None = None) -> dict[str, Any]:
    return partition_tasks(get_all_active(), _today(ctx))


def get_week_data(days: int = 7, ctx: DateContext | None = None) -> dict[str, Any]:
    """Tasks per date for the next `days` days (today first) plus overdue, soon, someday and inbox."""
    ctx = ctx or DateContext.from_config()
    window = date_range(days_from_now(0, ctx), max(days, 1))
    dates: dict[str, list[dict[str, Any]]] = {d: [] for d in window}
    for task in get_by_date_range(window[0], window[-1]):
        dates[task["due_date"]].append(task)
    return {
        "dates": dates,
        "overdue": get_overdue(ctx),
        "soon": get_soon(),
        "someday": get_someday(),
        "inbox": get_inbox(),
    }


def get_stats(ctx: DateContext | None = None) -> dict[str, int]:
    buckets = get_buckets(ctx)
    total = count_tasks()
    active = count_tasks(include_completed=False)
    return {
        "total": total,
        "active": active,
        "completed": total - active,
        "overdue": len(buckets["overdue"]),
        "due_today": len(buckets["today"]),
        "future": sum(len(v) for v in buckets["future"].values()),
        "soon": len(buckets["soon"]),
        "someday": len(buckets["someday"]),
        "inbox": len(buckets["inbox"]),
    }
