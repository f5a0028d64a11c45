"""JSON API for taskbook: tasks, buckets, recurring templates and generation."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

import bucket_service
import generation
import task_service
import template_service
from config import AppConfig, load as load_config
from date_utils import DateContext, require_date, require_time
from task_service import _UNSET, ensure_db

app = FastAPI(title="Taskbook", version="1.0")
logger = logging.getLogger("taskbook.api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """When config.debug is True, log API request method and path."""
    debug = load_config().debug
    if debug:
        qs = request.url.query
        logger.warning("[API] %s %s%s", request.method, request.url.path, "?" + qs if qs else "")
    response = await call_next(request)
    if debug:
        logger.warning("[API] %s %s -> %s", request.method, request.url.path, response.status_code)
    return response


def _ctx() -> DateContext:
    return DateContext.from_config()


def _not_found(what: str = "Task") -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


def _date(value: str | None, ctx: DateContext) -> str | None:
    """Accept any parse_date form ('tomorrow', 'fri', '3/1', ISO); empty clears."""
    return require_date(value, ctx) if value else None


def _time(value: str | None) -> str | None:
    return require_time(value) if value else None


# --- API schemas ---


class ConfigUpdate(BaseModel):
    user_timezone: str = "UTC"
    database_path: str = ""
    horizon_days: int = Field(14, ge=1, le=366)
    web_ui_port: int = Field(8082, ge=1, le=65535)
    debug: bool = False


class TaskCreate(BaseModel):
    title: str
    description: str | None = None
    due_date: str | None = None
    due_time: str | None = None
    tags: list[str] = Field(default_factory=list)
    project: str | None = None
    priority: int = Field(0, ge=0, le=2)
    placement: str | None = None


class MoveBody(BaseModel):
    placement: str = Field(..., description="dated | soon | someday | inbox")
    due_date: str | None = None
    due_time: str | None = None


class TemplateCreate(BaseModel):
    title: str
    every: str | None = Field(None, description="'day', 'week', '2 weeks', ... (alternative to recur_type/recur_interval)")
    recur_type: str | None = None
    recur_interval: int = Field(1, ge=1)
    recur_days: list[str] | None = None
    recur_day_of_month: int | None = Field(None, ge=1, le=31)
    start_date: str | None = None
    end_date: str | None = None
    description: str | None = None
    due_time: str | None = None
    tags: list[str] = Field(default_factory=list)
    project: str | None = None
    priority: int = Field(0, ge=0, le=2)
    enabled: bool = True


# --- Config ---


@app.get("/api/config", response_model=ConfigUpdate)
def get_config() -> ConfigUpdate:
    return ConfigUpdate(**load_config().model_dump())


@app.put("/api/config")
def put_config(body: ConfigUpdate) -> dict[str, str]:
    try:
        AppConfig.model_validate(body.model_dump()).save()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "saved"}


# --- Tasks ---


@app.get("/api/tasks")
def api_list_tasks(bucket: str | None = None, date: str | None = None, tag: str | None = None):
    """Active tasks; narrow with ?bucket=overdue|today|tomorrow|soon|someday|inbox|completed, ?date= or ?tag=."""
    ctx = _ctx()
    try:
        if date:
            return bucket_service.get_by_date(require_date(date, ctx))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if tag:
        return bucket_service.get_by_tag(tag)
    getters = {
        None: bucket_service.get_all_active,
        "overdue": lambda: bucket_service.get_overdue(ctx),
        "today": lambda: bucket_service.get_today(ctx),
        "tomorrow": lambda: bucket_service.get_tomorrow(ctx),
        "week": lambda: bucket_service.get_this_week(ctx),
        "soon": bucket_service.get_soon,
        "someday": bucket_service.get_someday,
        "inbox": bucket_service.get_inbox,
        "completed": bucket_service.get_completed,
    }
    if bucket not in getters:
        raise HTTPException(status_code=400, detail=f"Unknown bucket: {bucket}")
    return getters[bucket]()


@app.post("/api/tasks", status_code=201)
def api_create_task(body: TaskCreate):
    ctx = _ctx()
    try:
        return task_service.create_task(
            body.title,
            description=body.description,
            due_date=_date(body.due_date, ctx),
            due_time=_time(body.due_time),
            tags=body.tags,
            project=body.project,
            priority=body.priority,
            placement=body.placement,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/tasks/reminders")
def api_reminders():
    return bucket_service.get_needing_reminder(_ctx())


@app.get("/api/tasks/{task_id}")
def api_get_task(task_id: int):
    t = task_service.get_task(task_id)
    if t is None:
        raise _not_found()
    return t


@app.put("/api/tasks/{task_id}")
def api_update_task(task_id: int, body: dict):
    """Partial update: only keys present in the body change."""
    ctx = _ctx()
    try:
        t = task_service.update_task(
            task_id,
            title=body["title"] if "title" in body else _UNSET,
            description=body["description"] if "description" in body else _UNSET,
            due_date=_date(body.get("due_date"), ctx) if "due_date" in body else _UNSET,
            due_time=_time(body.get("due_time")) if "due_time" in body else _UNSET,
            tags=body["tags"] if "tags" in body else _UNSET,
            project=body["project"] if "project" in body else _UNSET,
            priority=body["priority"] if "priority" in body else _UNSET,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if t is None:
        raise _not_found()
    return t


@app.delete("/api/tasks/{task_id}")
def api_delete_task(task_id: int):
    if not task_service.delete_task(task_id):
        raise _not_found()
    return {"status": "deleted"}


@app.post("/api/tasks/{task_id}/complete")
def api_complete_task(task_id: int):
    t = task_service.complete_task(task_id)
    if t is None:
        raise _not_found()
    return t


@app.post("/api/tasks/{task_id}/reopen")
def api_reopen_task(task_id: int):
    t = task_service.reopen_task(task_id)
    if t is None:
        raise _not_found()
    return t


@app.post("/api/tasks/{task_id}/skip")
def api_skip_task(task_id: int):
    if not generation.skip_task(task_id):
        raise _not_found()
    return {"status": "skipped"}


@app.post("/api/tasks/{task_id}/reminded")
def api_mark_reminded(task_id: int):
    if not task_service.mark_reminded(task_id):
        raise _not_found()
    return {"status": "reminded"}


@app.post("/api/tasks/{task_id}/move")
def api_move_task(task_id: int, body: MoveBody):
    ctx = _ctx()
    try:
        if body.placement == "dated":
            if not body.due_date:
                raise ValueError("due_date is required to move a task to a date")
            t = task_service.move_to_date(task_id, require_date(body.due_date, ctx), _time(body.due_time))
        elif body.placement == "soon":
            t = task_service.move_to_soon(task_id)
        elif body.placement == "someday":
            t = task_service.move_to_someday(task_id)
        elif body.placement == "inbox":
            t = task_service.move_to_inbox(task_id)
        else:
            raise ValueError(f"Unknown placement: {body.placement}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if t is None:
        raise _not_found()
    return t


# --- Views ---


@app.get("/api/buckets")
def api_buckets():
    return bucket_service.get_buckets(_ctx())


@app.get("/api/week")
def api_week(days: int = 7):
    if not 1 <= days <= 62:
        raise HTTPException(status_code=400, detail="days must be 1-62")
    return bucket_service.get_week_data(days, _ctx())


@app.get("/api/stats")
def api_stats():
    return bucket_service.get_stats(_ctx())


@app.get("/api/search")
def api_search(q: str = ""):
    return bucket_service.search(q)


# --- Recurring templates ---


@app.get("/api/templates")
def api_list_templates(include_disabled: bool = False):
    return template_service.list_templates(include_disabled=include_disabled)


@app.post("/api/templates", status_code=201)
def api_create_template(body: TemplateCreate):
    ctx = _ctx()
    try:
        if body.every:
            recur_type, interval = template_service.parse_recurrence(body.every)
        elif body.recur_type:
            recur_type, interval = body.recur_type, body.recur_interval
        else:
            raise ValueError("Either every or recur_type is required")
        start = _date(body.start_date, ctx) or ctx.today().isoformat()
        return template_service.create_template(
            body.title,
            recur_type=recur_type,
            recur_interval=interval,
            recur_days=body.recur_days,
            recur_day_of_month=body.recur_day_of_month,
            start_date=start,
            end_date=_date(body.end_date, ctx),
            description=body.description,
            due_time=_time(body.due_time),
            tags=body.tags,
            project=body.project,
            priority=body.priority,
            enabled=body.enabled,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/templates/{template_id}")
def api_get_template(template_id: int):
    t = template_service.get_template(template_id)
    if t is None:
        raise _not_found("Template")
    return t


@app.put("/api/templates/{template_id}")
def api_update_template(template_id: int, body: dict):
    ctx = _ctx()
    changes: dict[str, Any] = {}
    try:
        if body.get("every"):
            changes["recur_type"], changes["recur_interval"] = template_service.parse_recurrence(body["every"])
        for key in (
            "title", "description", "tags", "project", "priority",
            "recur_type", "recur_interval", "recur_days", "recur_day_of_month",
        ):
            if key in body:
                changes[key] = body[key]
        if "due_time" in body:
            changes["due_time"] = _time(body["due_time"])
        if "start_date" in body:
            changes["start_date"] = _date(body["start_date"], ctx)
        if "end_date" in body:
            changes["end_date"] = _date(body["end_date"], ctx)
        t = template_service.update_template(template_id, **changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if t is None:
        raise _not_found("Template")
    return t


@app.delete("/api/templates/{template_id}")
def api_delete_template(template_id: int):
    if not template_service.delete_template(template_id):
        raise _not_found("Template")
    return {"status": "deleted"}


@app.post("/api/templates/{template_id}/enable")
def api_enable_template(template_id: int):
    t = template_service.enable_template(template_id)
    if t is None:
        raise _not_found("Template")
    return t


@app.post("/api/templates/{template_id}/disable")
def api_disable_template(template_id: int):
    t = template_service.disable_template(template_id)
    if t is None:
        raise _not_found("Template")
    return t


@app.get("/api/templates/{template_id}/tasks")
def api_template_tasks(template_id: int, include_completed: bool = True):
    if template_service.get_template(template_id) is None:
        raise _not_found("Template")
    return generation.get_tasks_for_template(template_id, include_completed=include_completed)


@app.post("/api/templates/{template_id}/generate")
def api_generate_template(template_id: int, days: int | None = None):
    if template_service.get_template(template_id) is None:
        raise _not_found("Template")
    try:
        horizon = days if days is not None else load_config().horizon_days
        created = generation.generate_for_template(template_id, horizon, ctx=_ctx())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"created": created}


@app.post("/api/generate")
def api_generate(days: int | None = None):
    try:
        horizon = days if days is not None else load_config().horizon_days
        return generation.generate_all(horizon, ctx=_ctx())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/recurring/upcoming")
def api_upcoming_recurring(days: int = 7):
    return generation.get_upcoming_recurring(days, ctx=_ctx())


def main() -> None:
    import uvicorn
    # Bootstrap SQLite database on first run
    ensure_db()
    config = load_config()
    uvicorn.run(
        "web_app:app",
        host="0.0.0.0",
        port=config.web_ui_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
