#!/usr/bin/env python3
"""
Command-line interface for taskbook.

    taskbook add "Call dentist" --due tomorrow --time 2pm
    taskbook week
    taskbook recur add "Standup" --every week --days mon,tue,wed,thu,fri --time 10am
    taskbook recur generate

Every command accepts --json (before the command name) for machine-readable output.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable

import bucket_service
import generation
import task_service
import template_service
from config import AppConfig, config_exists, config_path, load as load_config
from date_utils import DateContext, format_date, format_time, require_date, require_time, weekday_code

logger = logging.getLogger("taskbook.cli")

PRIORITY_LABELS = {v: k for k, v in task_service.PRIORITY_NAMES.items()}


# --- output helpers ---


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def format_task_line(task: dict[str, Any], ctx: DateContext) -> str:
    box = "[x]" if task.get("completed_at") else "[ ]"
    parts = [f"{box} [{task['id']}] {task['title']}"]
    if task.get("due_date"):
        when = format_date(task["due_date"], ctx)
        if task.get("due_time"):
            when += " " + format_time(task["due_time"])
        parts.append(f"({when})")
    elif task.get("placement") in ("soon", "someday"):
        parts.append(f"({task['placement']})")
    parts.extend(f"#{t}" for t in task.get("tags") or [])
    if task.get("project"):
        parts.append(f"@{task['project']}")
    if task.get("priority"):
        parts.append("!" * task["priority"])
    if task.get("template_id"):
        parts.append("(recurring)")
    return " ".join(parts)


def format_template_line(template: dict[str, Any]) -> str:
    line = f"[{template['id']}] {template['title']} - {template_service.format_recurrence(template)}"
    if template.get("due_time"):
        line += f" @ {format_time(template['due_time'])}"
    if not template.get("enabled"):
        line += " [disabled]"
    return line


def _print_section(title: str, tasks: list[dict[str, Any]], ctx: DateContext, *, show_empty: bool = True) -> None:
    if not tasks and not show_empty:
        return
    print(f"\n{title}")
    if not tasks:
        print("  (none)")
    for task in tasks:
        print("  " + format_task_line(task, ctx))


def _show_tasks(args: argparse.Namespace, title: str, tasks: list[dict[str, Any]]) -> int:
    if args.json:
        _print_json(tasks)
    else:
        _print_section(title, tasks, args.ctx)
    return 0


def _show_task(args: argparse.Namespace, task: dict[str, Any] | None, message: str, task_id: int) -> int:
    if task is None:
        print(f"Task not found: {task_id}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(task)
    else:
        print(f"{message} [{task['id']}] {task['title']}")
    return 0


def _priority(value: str | None) -> int | None:
    return task_service.PRIORITY_NAMES[value] if value else None


def _opt_date(value: str | None, ctx: DateContext) -> str | None:
    return require_date(value, ctx) if value else None


def _opt_time(value: str | None) -> str | None:
    return require_time(value) if value else None


# --- task commands ---


def cmd_list(args: argparse.Namespace) -> int:
    overdue = bucket_service.get_overdue(args.ctx)
    today = bucket_service.get_today(args.ctx)
    if args.json:
        _print_json({"overdue": overdue, "today": today})
        return 0
    _print_section("OVERDUE", overdue, args.ctx, show_empty=False)
    _print_section("TODAY", today, args.ctx)
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    due = _opt_date(args.due, args.ctx)
    tags = list(args.tag or [])
    placement = None
    if args.soon:
        placement = "soon"
    elif args.someday:
        placement = "someday"
    task = task_service.create_task(
        args.title,
        description=args.description,
        due_date=due,
        due_time=_opt_time(args.time),
        tags=tags,
        project=args.project,
        priority=_priority(args.priority) or 0,
        placement=placement,
    )
    if args.json:
        _print_json(task)
    else:
        print(f"Created task [{task['id']}]")
        print("  " + format_task_line(task, args.ctx))
    return 0


def cmd_today(args: argparse.Namespace) -> int:
    return _show_tasks(args, "TODAY", bucket_service.get_today(args.ctx))


def cmd_tomorrow(args: argparse.Namespace) -> int:
    return _show_tasks(args, "TOMORROW", bucket_service.get_tomorrow(args.ctx))


def cmd_overdue(args: argparse.Namespace) -> int:
    return _show_tasks(args, "OVERDUE", bucket_service.get_overdue(args.ctx))


def cmd_soon(args: argparse.Namespace) -> int:
    return _show_tasks(args, "SOON", bucket_service.get_soon())


def cmd_someday(args: argparse.Namespace) -> int:
    return _show_tasks(args, "SOMEDAY", bucket_service.get_someday())


def cmd_inbox(args: argparse.Namespace) -> int:
    return _show_tasks(args, "INBOX", bucket_service.get_inbox())


def cmd_date(args: argparse.Namespace) -> int:
    day = require_date(args.date, args.ctx)
    return _show_tasks(args, format_date(day, args.ctx).upper(), bucket_service.get_by_date(day))


def cmd_range(args: argparse.Namespace) -> int:
    start = require_date(args.start, args.ctx)
    end = require_date(args.end, args.ctx)
    if end < start:
        raise ValueError("End date is before start date")
    return _show_tasks(args, f"{start} .. {end}", bucket_service.get_by_date_range(start, end))


def cmd_week(args: argparse.Namespace) -> int:
    data = bucket_service.get_week_data(args.days, args.ctx)
    if args.json:
        _print_json(data)
        return 0
    _print_section("OVERDUE", data["overdue"], args.ctx, show_empty=False)
    for day, tasks in data["dates"].items():
        _print_section(format_date(day, args.ctx).upper(), tasks, args.ctx)
    _print_section("SOON", data["soon"], args.ctx, show_empty=False)
    _print_section("INBOX", data["inbox"], args.ctx, show_empty=False)
    return 0


def cmd_all(args: argparse.Namespace) -> int:
    buckets = bucket_service.get_buckets(args.ctx)
    if args.json:
        _print_json(buckets)
        return 0
    _print_section("OVERDUE", buckets["overdue"], args.ctx, show_empty=False)
    _print_section("TODAY", buckets["today"], args.ctx)
    for day, tasks in buckets["future"].items():
        _print_section(format_date(day, args.ctx).upper(), tasks, args.ctx)
    _print_section("SOON", buckets["soon"], args.ctx, show_empty=False)
    _print_section("SOMEDAY", buckets["someday"], args.ctx, show_empty=False)
    _print_section("INBOX", buckets["inbox"], args.ctx, show_empty=False)
    return 0


def cmd_done(args: argparse.Namespace) -> int:
    if args.id is None:
        return _show_tasks(args, "COMPLETED", bucket_service.get_completed(args.limit))
    return _show_task(args, task_service.complete_task(args.id), "Completed", args.id)


def cmd_undone(args: argparse.Namespace) -> int:
    return _show_task(args, task_service.reopen_task(args.id), "Reopened", args.id)


def cmd_move(args: argparse.Namespace) -> int:
    where = args.where.strip().lower()
    if where == "soon":
        task = task_service.move_to_soon(args.id)
    elif where == "someday":
        task = task_service.move_to_someday(args.id)
    elif where == "inbox":
        task = task_service.move_to_inbox(args.id)
    else:
        task = task_service.move_to_date(args.id, require_date(where, args.ctx), _opt_time(args.time))
    return _show_task(args, task, "Moved", args.id)


def cmd_due(args: argparse.Namespace) -> int:
    task = task_service.move_to_date(args.id, require_date(args.date, args.ctx), _opt_time(args.time))
    return _show_task(args, task, "Rescheduled", args.id)


def cmd_edit(args: argparse.Namespace) -> int:
    changes: dict[str, Any] = {}
    if args.title is not None:
        changes["title"] = args.title
    if args.description is not None:
        changes["description"] = args.description
    if args.project is not None:
        changes["project"] = args.project
    if args.priority is not None:
        changes["priority"] = _priority(args.priority)
    if args.tags is not None:
        changes["tags"] = args.tags
    if args.time is not None:
        changes["due_time"] = _opt_time(args.time)
    return _show_task(args, task_service.update_task(args.id, **changes), "Updated", args.id)


def cmd_delete(args: argparse.Namespace) -> int:
    task = task_service.get_task(args.id)
    if task is None or not task_service.delete_task(args.id):
        print(f"Task not found: {args.id}", file=sys.stderr)
        return 1
    if args.json:
        _print_json({"deleted": True, "id": args.id})
    else:
        print(f"Deleted [{args.id}] {task['title']}")
    return 0


def cmd_skip(args: argparse.Namespace) -> int:
    task = task_service.get_task(args.id)
    if task is None:
        print(f"Task not found: {args.id}", file=sys.stderr)
        return 1
    if not task.get("template_id"):
        print(f"Note: task {args.id} is not recurring; deleting it", file=sys.stderr)
    generation.skip_task(args.id)
    if args.json:
        _print_json({"skipped": True, "id": args.id})
    else:
        print(f"Skipped [{args.id}] {task['title']}")
    return 0


def cmd_tag(args: argparse.Namespace) -> int:
    task = task_service.get_task(args.id)
    if task is not None and args.add:
        task = task_service.add_tags(args.id, args.add)
    if task is not None and args.remove:
        task = task_service.remove_tags(args.id, args.remove)
    if task is None:
        print(f"Task not found: {args.id}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(task)
    else:
        print(f"[{task['id']}] " + (" ".join(f"#{t}" for t in task["tags"]) or "(no tags)"))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    if args.tag:
        return _show_tasks(args, f"#{args.query}", bucket_service.get_by_tag(args.query))
    return _show_tasks(args, f"SEARCH: {args.query}", bucket_service.search(args.query))


def cmd_remind(args: argparse.Namespace) -> int:
    tasks = bucket_service.get_needing_reminder(args.ctx)
    if args.mark:
        for task in tasks:
            task_service.mark_reminded(task["id"])
    return _show_tasks(args, "REMINDERS", tasks)


def cmd_stats(args: argparse.Namespace) -> int:
    stats = bucket_service.get_stats(args.ctx)
    if args.json:
        _print_json(stats)
        return 0
    for key, value in stats.items():
        print(f"{key.replace('_', ' ').capitalize():<12} {value}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    config = load_config()
    updates = {
        key: value
        for key, value in (
            ("user_timezone", args.timezone),
            ("horizon_days", args.horizon),
            ("web_ui_port", args.port),
        )
        if value is not None
    }
    # Written on first use even without changes, so setup is not prompted again
    if updates or not config_exists():
        config = AppConfig.model_validate({**config.model_dump(), **updates})
        config.save()
    if args.json:
        _print_json(config.model_dump())
    else:
        print(f"Config: {config_path()}")
        for key, value in config.model_dump().items():
            print(f"  {key}: {value}")
    return 0


# --- recurring template commands ---


def cmd_recur_add(args: argparse.Namespace) -> int:
    recur_type, interval = template_service.parse_recurrence(args.every)
    start = require_date(args.start, args.ctx) if args.start else args.ctx.today().isoformat()
    days = args.days
    if recur_type == "weekly" and not days:
        days = weekday_code(start)
    template = template_service.create_template(
        args.title,
        recur_type=recur_type,
        recur_interval=interval,
        recur_days=days,
        recur_day_of_month=args.day,
        start_date=start,
        end_date=_opt_date(args.end, args.ctx),
        description=args.description,
        due_time=_opt_time(args.time),
        tags=list(args.tag or []),
        project=args.project,
        priority=_priority(args.priority) or 0,
    )
    if args.json:
        _print_json(template)
    else:
        print(f"Created recurring template [{template['id']}]")
        print("  " + format_template_line(template))
    return 0


def cmd_recur_list(args: argparse.Namespace) -> int:
    templates = template_service.list_templates(include_disabled=args.all)
    if args.json:
        _print_json(templates)
        return 0
    print("\nRECURRING TEMPLATES")
    if not templates:
        print("  (none)")
    for template in templates:
        print("  " + format_template_line(template))
    return 0


def cmd_recur_edit(args: argparse.Namespace) -> int:
    changes: dict[str, Any] = {}
    if args.every is not None:
        changes["recur_type"], changes["recur_interval"] = template_service.parse_recurrence(args.every)
    for key in ("title", "description", "project"):
        if getattr(args, key) is not None:
            changes[key] = getattr(args, key)
    if args.days is not None:
        changes["recur_days"] = args.days
    elif changes.get("recur_type") == "weekly":
        current = template_service.get_template(args.id)
        if current is None:
            return _show_template(args, None, "Updated")
        if not current["recur_days"]:
            start = require_date(args.start, args.ctx) if args.start else current["start_date"]
            changes["recur_days"] = weekday_code(start)
    if args.day is not None:
        changes["recur_day_of_month"] = args.day
    if args.time is not None:
        changes["due_time"] = _opt_time(args.time)
    if args.start is not None:
        changes["start_date"] = require_date(args.start, args.ctx)
    if args.end is not None:
        changes["end_date"] = None if args.end.lower() == "none" else require_date(args.end, args.ctx)
    if args.tags is not None:
        changes["tags"] = args.tags
    if args.priority is not None:
        changes["priority"] = _priority(args.priority)
    return _show_template(args, template_service.update_template(args.id, **changes), "Updated")


def _show_template(args: argparse.Namespace, template: dict[str, Any] | None, message: str) -> int:
    if template is None:
        print(f"Template not found: {args.id}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(template)
    else:
        print(f"{message} template " + format_template_line(template))
    return 0


def cmd_recur_enable(args: argparse.Namespace) -> int:
    return _show_template(args, template_service.enable_template(args.id), "Enabled")


def cmd_recur_disable(args: argparse.Namespace) -> int:
    return _show_template(args, template_service.disable_template(args.id), "Disabled")


def cmd_recur_delete(args: argparse.Namespace) -> int:
    template = template_service.get_template(args.id)
    if template is None or not template_service.delete_template(args.id):
        print(f"Template not found: {args.id}", file=sys.stderr)
        return 1
    if args.json:
        _print_json({"deleted": True, "id": args.id})
    else:
        print(f"Deleted template [{args.id}] {template['title']}")
    return 0


def cmd_recur_generate(args: argparse.Namespace) -> int:
    horizon = args.days if args.days is not None else load_config().horizon_days
    if args.id is not None:
        template = template_service.get_template(args.id)
        if template is None:
            print(f"Template not found: {args.id}", file=sys.stderr)
            return 1
        created = generation.generate_for_template(args.id, horizon, ctx=args.ctx)
        result: dict[str, Any] = {
            "templatesProcessed": 1 if template["enabled"] else 0,
            "tasksCreated": len(created),
            "templatesFailed": [],
        }
    else:
        result = generation.generate_all(horizon, ctx=args.ctx)
    if args.json:
        _print_json(result)
    else:
        print(f"Generated {result['tasksCreated']} tasks from {result['templatesProcessed']} templates")
        if result["templatesFailed"]:
            print(f"Failed templates: {', '.join(str(i) for i in result['templatesFailed'])}", file=sys.stderr)
    return 1 if result["templatesFailed"] else 0


def cmd_recur_tasks(args: argparse.Namespace) -> int:
    tasks = generation.get_tasks_for_template(args.id, include_completed=not args.active)
    return _show_tasks(args, f"OCCURRENCES OF TEMPLATE {args.id}", tasks)


# --- setup / parser ---


def first_run_setup(ask: Callable[[str], str] = input) -> AppConfig:
    """Prompt for the timezone and write the initial config file."""
    print("Welcome to taskbook. Let's set things up.")
    while True:
        answer = ask("Timezone (e.g., America/Los_Angeles) [UTC]: ").strip() or "UTC"
        try:
            config = AppConfig(user_timezone=answer)
            break
        except ValueError as e:
            print(f"  {e}")
    config.save()
    print(f"Saved config to {config_path()}")
    return config


def _add_task_fields(p: argparse.ArgumentParser) -> None:
    p.add_argument("--description")
    p.add_argument("--project")
    p.add_argument("--priority", choices=sorted(task_service.PRIORITY_NAMES))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskbook", description="Personal task tracker with recurring tasks")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log service activity to stderr")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("list", help="Overdue and today (default)").set_defaults(func=cmd_list)

    p = sub.add_parser("add", help="Add a task")
    p.add_argument("title")
    p.add_argument("--due", help="today, tomorrow, fri, next mon, +3d, 2026-03-01, 3/1, mar 1")
    p.add_argument("--time", help="14:30, 2pm, 2:30pm")
    p.add_argument("--tag", action="append", help="Tag (repeatable)")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--soon", action="store_true")
    group.add_argument("--someday", action="store_true")
    _add_task_fields(p)
    p.set_defaults(func=cmd_add)

    for name, func, help_text in (
        ("today", cmd_today, "Due today"),
        ("tomorrow", cmd_tomorrow, "Due tomorrow"),
        ("overdue", cmd_overdue, "Past due"),
        ("soon", cmd_soon, "Undated, soon"),
        ("someday", cmd_someday, "Undated, someday"),
        ("inbox", cmd_inbox, "Undated, unsorted"),
        ("all", cmd_all, "Every active task by bucket"),
        ("stats", cmd_stats, "Counts per bucket"),
    ):
        sub.add_parser(name, help=help_text).set_defaults(func=func)

    p = sub.add_parser("date", help="Tasks due on a date")
    p.add_argument("date")
    p.set_defaults(func=cmd_date)

    p = sub.add_parser("range", help="Tasks due between two dates")
    p.add_argument("start")
    p.add_argument("end")
    p.set_defaults(func=cmd_range)

    p = sub.add_parser("week", help="Week view")
    p.add_argument("--days", type=int, default=7)
    p.set_defaults(func=cmd_week)

    p = sub.add_parser("done", help="Complete a task, or list completed tasks")
    p.add_argument("id", type=int, nargs="?")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(func=cmd_done)

    p = sub.add_parser("undone", help="Reopen a task")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_undone)

    p = sub.add_parser("move", help="Move a task to a date, soon, someday or inbox")
    p.add_argument("id", type=int)
    p.add_argument("where")
    p.add_argument("--time")
    p.set_defaults(func=cmd_move)

    p = sub.add_parser("due", help="Set a task's due date")
    p.add_argument("id", type=int)
    p.add_argument("date")
    p.add_argument("--time")
    p.set_defaults(func=cmd_due)

    p = sub.add_parser("edit", help="Edit a task")
    p.add_argument("id", type=int)
    p.add_argument("--title")
    p.add_argument("--tags", help="Replace tags (comma-separated)")
    p.add_argument("--time")
    _add_task_fields(p)
    p.set_defaults(func=cmd_edit)

    for name, func, help_text in (
        ("delete", cmd_delete, "Delete a task"),
        ("skip", cmd_skip, "Skip one occurrence of a recurring task"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("id", type=int)
        p.set_defaults(func=func)

    p = sub.add_parser("tag", help="Show, add or remove tags")
    p.add_argument("id", type=int)
    p.add_argument("--add", action="append")
    p.add_argument("--remove", action="append")
    p.set_defaults(func=cmd_tag)

    p = sub.add_parser("search", help="Search titles and descriptions")
    p.add_argument("query")
    p.add_argument("--tag", action="store_true", help="Match the query as an exact tag")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("remind", help="Tasks due that have not been reminded today")
    p.add_argument("--mark", action="store_true", help="Mark them as reminded")
    p.set_defaults(func=cmd_remind)

    p = sub.add_parser("config", help="Show or change configuration")
    p.add_argument("--timezone")
    p.add_argument("--horizon", type=int)
    p.add_argument("--port", type=int)
    p.set_defaults(func=cmd_config)

    recur = sub.add_parser("recur", help="Recurring templates")
    recur.set_defaults(func=cmd_recur_list, all=False)
    rsub = recur.add_subparsers(dest="recur_command")

    p = rsub.add_parser("add", help="Create a template")
    p.add_argument("title")
    p.add_argument("--every", required=True, help="day, week, month, year, or e.g. '2 weeks'")
    p.add_argument("--days", help="Weekdays for weekly templates, e.g. mon,wed,fri")
    p.add_argument("--day", type=int, help="Day of month for monthly templates")
    p.add_argument("--time")
    p.add_argument("--start", help="First date (default today)")
    p.add_argument("--end")
    p.add_argument("--tag", action="append")
    _add_task_fields(p)
    p.set_defaults(func=cmd_recur_add)

    p = rsub.add_parser("list", help="List templates")
    p.add_argument("--all", action="store_true", help="Include disabled templates")
    p.set_defaults(func=cmd_recur_list)

    p = rsub.add_parser("edit", help="Edit a template")
    p.add_argument("id", type=int)
    p.add_argument("--title")
    p.add_argument("--every")
    p.add_argument("--days")
    p.add_argument("--day", type=int)
    p.add_argument("--time")
    p.add_argument("--start")
    p.add_argument("--end", help="End date, or 'none' to clear")
    p.add_argument("--tags", help="Replace tags (comma-separated)")
    _add_task_fields(p)
    p.set_defaults(func=cmd_recur_edit)

    for name, func in (("enable", cmd_recur_enable), ("disable", cmd_recur_disable), ("delete", cmd_recur_delete)):
        p = rsub.add_parser(name, help=f"{name.capitalize()} a template")
        p.add_argument("id", type=int)
        p.set_defaults(func=func)

    p = rsub.add_parser("generate", help="Create upcoming occurrences")
    p.add_argument("--days", type=int, help="Horizon in days (default from config)")
    p.add_argument("--id", type=int, help="Only this template")
    p.set_defaults(func=cmd_recur_generate)

    p = rsub.add_parser("tasks", help="Occurrences of a template")
    p.add_argument("id", type=int)
    p.add_argument("--active", action="store_true", help="Hide completed occurrences")
    p.set_defaults(func=cmd_recur_tasks)

    return parser


def main(argv: list[str] | None = None, *, ctx: DateContext | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )
    if args.command is None:
        args.func = cmd_list
    if not config_exists() and args.command != "config":
        first_run_setup()
    args.ctx = ctx or DateContext.from_config()
    try:
        return args.func(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
