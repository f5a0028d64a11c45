# tests/test_database.py

from __future__ import annotations

import sqlite3

import bucket_service
from config import AppConfig
from database import get_connection, init_database


def test_legacy_tags_migrate_to_placement(home) -> None:
    path = home / "legacy.db"
    conn = sqlite3.connect(str(path))
    conn.executescript(
        """
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            due_date TEXT,
            due_time TEXT,
            tags TEXT,
            project TEXT,
            priority INTEGER DEFAULT 0,
            completed_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            template_id INTEGER
        );
        INSERT INTO tasks (title, tags, created_at, updated_at) VALUES ('a', 'soon,home', 'x', 'x');
        INSERT INTO tasks (title, tags, created_at, updated_at) VALUES ('b', 'someday', 'x', 'x');
        INSERT INTO tasks (title, tags, created_at, updated_at) VALUES ('c', NULL, 'x', 'x');
        INSERT INTO tasks (title, due_date, created_at, updated_at, template_id) VALUES ('d', '2026-02-15', 'x', 'x', 7);
        INSERT INTO tasks (title, due_date, created_at, updated_at, template_id) VALUES ('e', '2026-02-15', 'x', 'x', 7);
        """
    )
    conn.commit()
    conn.close()

    init_database(path)
    init_database(path)  # second run is a no-op

    conn = get_connection(path)
    try:
        rows = {r["title"]: dict(r) for r in conn.execute("SELECT * FROM tasks")}
    finally:
        conn.close()
    assert rows["a"]["placement"] == "soon"
    assert rows["a"]["tags"] == "home"
    assert rows["b"]["placement"] == "someday"
    assert rows["b"]["tags"] == ""
    assert rows["c"]["placement"] == "inbox"
    assert rows["d"]["placement"] == "dated"
    # duplicate legacy occurrences: only the first one claims the date
    assert rows["d"]["occurrence_date"] == "2026-02-15"
    assert rows["e"]["occurrence_date"] is None
    assert "reminded_at" in rows["a"]

    AppConfig(database_path=str(path)).save()
    assert bucket_service.get_by_tag("soon") == []
    assert [t["title"] for t in bucket_service.get_by_tag("home")] == ["a"]
    assert [t["title"] for t in bucket_service.get_soon()] == ["a"]
