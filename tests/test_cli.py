# tests/test_cli.py

from __future__ import annotations

import json

import pytest

import cli
from config import config_exists, load as load_config


def _run(capsys, ctx, *argv: str) -> tuple[int, str, str]:
    code = cli.main(list(argv), ctx=ctx)
    out, err = capsys.readouterr()
    return code, out, err


def _json(capsys, ctx, *argv: str):
    code, out, _ = _run(capsys, ctx, "--json", *argv)
    assert code == 0
    return json.loads(out)


def test_add_and_list_today(capsys, ctx) -> None:
    code, out, _ = _run(capsys, ctx, "add", "Call dentist", "--due", "today", "--time", "2pm", "--tag", "health")
    assert code == 0
    assert "Created task [1]" in out
    assert "(Today 2pm) #health" in out
    today = _json(capsys, ctx, "today")
    assert [t["title"] for t in today] == ["Call dentist"]
    listing = _json(capsys, ctx, "list")
    assert listing["overdue"] == []
    assert len(listing["today"]) == 1


def test_default_command_is_list(capsys, ctx) -> None:
    _run(capsys, ctx, "add", "Late", "--due", "2026-02-01")
    code, out, _ = _run(capsys, ctx)
    assert code == 0
    assert "OVERDUE" in out
    assert "Late" in out


def test_soon_someday_and_moves(capsys, ctx) -> None:
    task = _json(capsys, ctx, "add", "Paint fence", "--soon")
    assert task["placement"] == "soon"
    moved = _json(capsys, ctx, "move", str(task["id"]), "someday")
    assert moved["placement"] == "someday"
    assert _json(capsys, ctx, "soon") == []
    dated = _json(capsys, ctx, "move", str(task["id"]), "fri", "--time", "9:30")
    assert dated["due_date"] == "2026-02-20"
    assert dated["due_time"] == "09:30"
    due = _json(capsys, ctx, "due", str(task["id"]), "+1w")
    assert due["due_date"] == "2026-02-22"


def test_done_undone_delete(capsys, ctx) -> None:
    task = _json(capsys, ctx, "add", "Task")
    assert _json(capsys, ctx, "done", str(task["id"]))["completed_at"]
    assert [t["id"] for t in _json(capsys, ctx, "done")] == [task["id"]]
    assert _json(capsys, ctx, "undone", str(task["id"]))["completed_at"] is None
    assert _json(capsys, ctx, "delete", str(task["id"])) == {"deleted": True, "id": task["id"]}
    code, _, err = _run(capsys, ctx, "done", str(task["id"]))
    assert code == 1
    assert "Task not found" in err


def test_bad_input_exits_with_error(capsys, ctx) -> None:
    code, _, err = _run(capsys, ctx, "add", "x", "--due", "whenever")
    assert code == 1
    assert "Could not parse date" in err
    code, _, err = _run(capsys, ctx, "add", "x", "--time", "9am")
    assert code == 1
    assert "requires a due date" in err


def test_edit_tag_search(capsys, ctx) -> None:
    task = _json(capsys, ctx, "add", "Report", "--tag", "work")
    edited = _json(capsys, ctx, "edit", str(task["id"]), "--title", "Quarterly report", "--priority", "urgent")
    assert edited["title"] == "Quarterly report"
    assert edited["priority"] == 2
    tagged = _json(capsys, ctx, "tag", str(task["id"]), "--add", "q1", "--remove", "work")
    assert tagged["tags"] == ["q1"]
    assert [t["id"] for t in _json(capsys, ctx, "search", "quarterly")] == [task["id"]]
    assert [t["id"] for t in _json(capsys, ctx, "search", "q1", "--tag")] == [task["id"]]


def test_recurring_workflow(capsys, ctx) -> None:
    code, out, _ = _run(capsys, ctx, "recur", "add", "Standup", "--every", "week", "--days", "mon,wed", "--time", "10am")
    assert code == 0
    assert "Weekly (Mon, Wed) @ 10am" in out
    code, out, _ = _run(capsys, ctx, "recur", "generate", "--days", "14")
    assert code == 0
    assert "Generated 4 tasks from 1 templates" in out
    report = _json(capsys, ctx, "recur", "generate", "--days", "14")
    assert report["tasksCreated"] == 0

    occurrences = _json(capsys, ctx, "recur", "tasks", "1")
    assert [t["due_date"] for t in occurrences] == ["2026-02-16", "2026-02-18", "2026-02-23", "2026-02-25"]
    assert _json(capsys, ctx, "skip", str(occurrences[0]["id"])) == {"skipped": True, "id": occurrences[0]["id"]}

    assert _json(capsys, ctx, "recur", "disable", "1")["enabled"] is False
    assert _json(capsys, ctx, "recur", "list") == []
    assert len(_json(capsys, ctx, "recur", "list", "--all")) == 1
    edited = _json(capsys, ctx, "recur", "edit", "1", "--every", "2 weeks", "--end", "2026-12-31")
    assert edited["recur_interval"] == 2
    assert edited["end_date"] == "2026-12-31"
    assert _json(capsys, ctx, "recur", "delete", "1") == {"deleted": True, "id": 1}
    code, _, err = _run(capsys, ctx, "recur", "enable", "1")
    assert code == 1
    assert "Template not found" in err


def test_weekly_template_defaults_to_start_weekday(capsys, ctx) -> None:
    template = _json(capsys, ctx, "recur", "add", "Review", "--every", "week", "--start", "2026-02-17")
    assert template["recur_days"] == ["tue"]


def test_recur_add_rejects_bad_every(capsys, ctx) -> None:
    code, _, err = _run(capsys, ctx, "recur", "add", "x", "--every", "fortnight")
    assert code == 1
    assert "Invalid recurrence" in err


def test_week_all_and_stats(capsys, ctx) -> None:
    _run(capsys, ctx, "add", "Today", "--due", "today")
    _run(capsys, ctx, "add", "Later", "--due", "mar 1")
    _run(capsys, ctx, "add", "Idea")
    week = _json(capsys, ctx, "week")
    assert list(week["dates"])[0] == "2026-02-15"
    buckets = _json(capsys, ctx, "all")
    assert list(buckets["future"]) == ["2026-03-01"]
    stats = _json(capsys, ctx, "stats")
    assert stats["active"] == 3
    code, out, _ = _run(capsys, ctx, "all")
    assert "TODAY" in out and "INBOX" in out


def test_config_command(capsys, ctx) -> None:
    config = _json(capsys, ctx, "config", "--timezone", "America/New_York", "--horizon", "21")
    assert config["user_timezone"] == "America/New_York"
    assert load_config().horizon_days == 21
    code, _, err = _run(capsys, ctx, "config", "--timezone", "Nowhere/Special")
    assert code == 1
    assert load_config().user_timezone == "America/New_York"


def test_first_run_setup(home, capsys) -> None:
    (home / "config.json").unlink()
    assert not config_exists()
    answers = iter(["Not/AZone", "Europe/Berlin"])
    config = cli.first_run_setup(lambda _prompt: next(answers))
    assert config.user_timezone == "Europe/Berlin"
    assert load_config().user_timezone == "Europe/Berlin"
    assert "Unknown timezone" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["undone", "5"], ["move", "5", "soon"], ["edit", "5", "--title", "x"]])
def test_missing_task(capsys, ctx, argv: list[str]) -> None:
    code, _, err = _run(capsys, ctx, *argv)
    assert code == 1
    assert "Task not found: 5" in err


def test_generate_single_template(capsys, ctx) -> None:
    code, _, err = _run(capsys, ctx, "recur", "generate", "--id", "999")
    assert code == 1
    assert "Template not found: 999" in err
    template = _json(capsys, ctx, "recur", "add", "Stretch", "--every", "day")
    report = _json(capsys, ctx, "recur", "generate", "--id", str(template["id"]), "--days", "3")
    assert report == {"templatesProcessed": 1, "tasksCreated": 3, "templatesFailed": []}
    _json(capsys, ctx, "recur", "disable", str(template["id"]))
    report = _json(capsys, ctx, "recur", "generate", "--id", str(template["id"]), "--days", "5")
    assert report == {"templatesProcessed": 0, "tasksCreated": 0, "templatesFailed": []}


def test_edit_to_weekly_defaults_to_start_weekday(capsys, ctx) -> None:
    template = _json(capsys, ctx, "recur", "add", "Review", "--every", "day", "--start", "2026-02-17")
    assert template["recur_days"] is None
    edited = _json(capsys, ctx, "recur", "edit", str(template["id"]), "--every", "week")
    assert edited["recur_type"] == "weekly"
    assert edited["recur_days"] == ["tue"]
    edited = _json(capsys, ctx, "recur", "edit", str(template["id"]), "--every", "2 weeks")
    assert edited["recur_days"] == ["tue"]
    code, _, err = _run(capsys, ctx, "recur", "edit", "42", "--every", "week")
    assert code == 1
    assert "Template not found: 42" in err
