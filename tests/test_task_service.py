# tests/test_task_service.py

from __future__ import annotations

import pytest

import task_service
from database import get_connection
from task_service import parse_tags


def test_create_and_get() -> None:
    task = task_service.create_task(
        "  Call dentist ", due_date="2026-02-16", due_time="14:30", tags="Health, calls", priority=1,
    )
    assert task["title"] == "Call dentist"
    assert task["tags"] == ["health", "calls"]
    assert task["placement"] == "dated"
    assert task["completed_at"] is None
    assert task["template_id"] is None
    assert task_service.get_task(task["id"]) == task
    assert task_service.get_task(9999) is None


def test_undated_task_defaults_to_inbox() -> None:
    assert task_service.create_task("idea")["placement"] == "inbox"


def test_legacy_reserved_tags_become_placement() -> None:
    task = task_service.create_task("paint", tags=["soon", "house"])
    assert task["placement"] == "soon"
    assert task["tags"] == ["house"]
    dated = task_service.create_task("paint", due_date="2026-02-20", tags=["someday"])
    assert dated["placement"] == "dated"
    assert dated["tags"] == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"title": "  "},
        {"title": "x", "priority": 3},
        {"title": "x", "priority": -1},
        {"title": "x", "due_time": "09:00"},
        {"title": "x", "due_date": "2026-13-01"},
        {"title": "x", "due_date": "tomorrow"},
        {"title": "x", "due_date": "2026-02-16", "due_time": "9am"},
        {"title": "x", "tags": ["a,b"]},
        {"title": "x", "tags": ["soon", "someday"]},
        {"title": "x", "placement": "later"},
        {"title": "x", "placement": "dated"},
        {"title": "x", "due_date": "2026-02-16", "placement": "soon"},
    ],
)
def test_create_validation(kwargs: dict) -> None:
    title = kwargs.pop("title")
    with pytest.raises(ValueError):
        task_service.create_task(title, **kwargs)
    assert task_service.count_tasks() == 0


def test_update_only_touches_given_fields() -> None:
    task = task_service.create_task("draft", description="notes", tags=["a"], project="p")
    updated = task_service.update_task(task["id"], title="final", priority=2)
    assert updated["title"] == "final"
    assert updated["priority"] == 2
    assert updated["description"] == "notes"
    assert updated["tags"] == ["a"]
    assert updated["project"] == "p"
    assert task_service.update_task(9999, title="x") is None


def test_update_due_date_drives_placement() -> None:
    task = task_service.create_task("x", placement="someday")
    dated = task_service.update_task(task["id"], due_date="2026-02-20", due_time="10:00")
    assert dated["placement"] == "dated"
    cleared = task_service.update_task(task["id"], due_date=None)
    assert cleared["placement"] == "inbox"
    assert cleared["due_time"] is None
    with pytest.raises(ValueError):
        task_service.update_task(task["id"], due_time="10:00")


def test_complete_is_idempotent_and_reopen_clears() -> None:
    task = task_service.create_task("x")
    done = task_service.complete_task(task["id"])
    assert done["completed_at"] is not None
    conn = get_connection()
    try:
        conn.execute("UPDATE tasks SET completed_at = '2026-01-01T00:00:00Z' WHERE id = ?", (task["id"],))
        conn.commit()
    finally:
        conn.close()
    assert task_service.complete_task(task["id"])["completed_at"] == "2026-01-01T00:00:00Z"
    assert task_service.reopen_task(task["id"])["completed_at"] is None
    assert task_service.complete_task(9999) is None
    assert task_service.reopen_task(9999) is None


def test_delete() -> None:
    task = task_service.create_task("x")
    assert task_service.delete_task(task["id"]) is True
    assert task_service.delete_task(task["id"]) is False
    assert task_service.get_task(task["id"]) is None


def test_move_to_date_clears_time_and_reminder() -> None:
    task = task_service.create_task("x", due_date="2026-02-15", due_time="09:00")
    assert task_service.mark_reminded(task["id"]) is True
    assert task_service.get_task(task["id"])["reminded_at"] is not None
    moved = task_service.move_to_date(task["id"], "2026-02-18")
    assert moved["due_date"] == "2026-02-18"
    assert moved["due_time"] is None
    assert moved["reminded_at"] is None
    timed = task_service.move_to_date(task["id"], "2026-02-19", "07:30")
    assert timed["due_time"] == "07:30"
    with pytest.raises(ValueError):
        task_service.move_to_date(task["id"], "next week")
    assert task_service.move_to_date(9999, "2026-02-19") is None
    assert task_service.mark_reminded(9999) is False


def test_undated_moves_drop_date_and_time() -> None:
    task = task_service.create_task("x", due_date="2026-02-15", due_time="09:00")
    for move, placement in (
        (task_service.move_to_soon, "soon"),
        (task_service.move_to_someday, "someday"),
        (task_service.move_to_inbox, "inbox"),
    ):
        moved = move(task["id"])
        assert moved["placement"] == placement
        assert moved["due_date"] is None
        assert moved["due_time"] is None
    assert task_service.move_to_soon(9999) is None


def test_add_and_remove_tags() -> None:
    task = task_service.create_task("x", tags=["a"])
    assert task_service.add_tags(task["id"], ["B", "a"])["tags"] == ["a", "b"]
    assert task_service.remove_tags(task["id"], "a")["tags"] == ["b"]
    moved = task_service.add_tags(task["id"], "someday")
    assert moved["placement"] == "someday"
    assert moved["tags"] == ["b"]
    assert task_service.add_tags(9999, "a") is None


def test_parse_tags() -> None:
    assert parse_tags(" Work, #Urgent,work,, ") == ["work", "urgent"]
    assert parse_tags(None) == []


def test_count_tasks() -> None:
    task_service.create_task("a")
    done = task_service.create_task("b")
    task_service.complete_task(done["id"])
    assert task_service.count_tasks() == 2
    assert task_service.count_tasks(include_completed=False) == 1
