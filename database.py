"""
SQLite database initialization and connection for Taskbook.
Self-bootstrapping: creates DB file, tables, indexes, and constraints on first run.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

# Wait up to this many seconds for locks (CLI and web API may share the DB)
_CONNECT_TIMEOUT = 30.0

_SCHEMA = """
-- Task occurrences. placement: dated | soon | someday | inbox ('dated' exactly when due_date is set)
-- priority: 0 normal, 1 high, 2 urgent
-- template_id is a weak reference (no FK): deleting a template leaves its occurrences in place
CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    due_date TEXT,
    due_time TEXT,
    tags TEXT NOT NULL DEFAULT '',
    project TEXT,
    priority INTEGER NOT NULL DEFAULT 0 CHECK (priority >= 0 AND priority <= 2),
    placement TEXT NOT NULL DEFAULT 'inbox' CHECK (placement IN ('dated', 'soon', 'someday', 'inbox')),
    reminded_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    completed_at TEXT,
    template_id INTEGER,
    occurrence_date TEXT,
    CHECK ((placement = 'dated') = (due_date IS NOT NULL)),
    CHECK (due_time IS NULL OR due_date IS NOT NULL)
);

CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date);
CREATE INDEX IF NOT EXISTS idx_tasks_completed_at ON tasks(completed_at);
CREATE INDEX IF NOT EXISTS idx_tasks_template ON tasks(template_id);

-- Recurrence templates
CREATE TABLE IF NOT EXISTS recurring_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    due_time TEXT,
    tags TEXT NOT NULL DEFAULT '',
    project TEXT,
    priority INTEGER NOT NULL DEFAULT 0 CHECK (priority >= 0 AND priority <= 2),
    recur_type TEXT NOT NULL CHECK (recur_type IN ('daily', 'weekly', 'monthly', 'yearly')),
    recur_interval INTEGER NOT NULL DEFAULT 1 CHECK (recur_interval >= 1),
    recur_days TEXT,
    recur_day_of_month INTEGER CHECK (recur_day_of_month IS NULL OR (recur_day_of_month >= 1 AND recur_day_of_month <= 31)),
    start_date TEXT NOT NULL,
    end_date TEXT,
    last_generated TEXT,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_templates_enabled ON recurring_templates(enabled);
"""


def get_db_path() -> Path:
    """Return the database file path (config database_path, else data dir / taskbook.db)."""
    from config import data_dir, load as load_config

    path = load_config().database_path
    if path:
        return Path(path).expanduser()
    return data_dir() / "taskbook.db"


def _add_column(conn: sqlite3.Connection, table: str, column_def: str) -> bool:
    """ALTER TABLE ... ADD COLUMN; False if the column already exists."""
    try:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column_def}")
        return True
    except sqlite3.OperationalError as e:
        if "duplicate column" not in str(e).lower():
            raise
        return False


def _strip_reserved_tags(conn: sqlite3.Connection) -> None:
    """Drop soon/someday from stored tag lists once placement carries them."""
    from task_service import RESERVED_TAGS, format_tags, parse_tags

    rows = conn.execute("SELECT id, tags FROM tasks WHERE tags IS NOT NULL AND tags != ''").fetchall()
    for task_id, tags in rows:
        parsed = parse_tags(tags)
        kept = [t for t in parsed if t not in RESERVED_TAGS]
        if kept != parsed or format_tags(kept) != tags:
            conn.execute("UPDATE tasks SET tags = ? WHERE id = ?", (format_tags(kept), task_id))


def _migrate_legacy_tasks(conn: sqlite3.Connection) -> None:
    """Databases created before placement/occurrence_date columns: add and backfill them."""
    if _add_column(conn, "tasks", "placement TEXT NOT NULL DEFAULT 'inbox'"):
        # soon/someday used to be reserved tag values
        conn.execute("""
            UPDATE tasks SET placement = CASE
                WHEN due_date IS NOT NULL THEN 'dated'
                WHEN ',' || tags || ',' LIKE '%,soon,%' THEN 'soon'
                WHEN ',' || tags || ',' LIKE '%,someday,%' THEN 'someday'
                ELSE 'inbox'
            END
        """)
        _strip_reserved_tags(conn)
    if _add_column(conn, "tasks", "occurrence_date TEXT"):
        conn.execute("""
            UPDATE tasks SET occurrence_date = due_date
            WHERE template_id IS NOT NULL AND due_date IS NOT NULL
              AND id = (
                SELECT MIN(t2.id) FROM tasks t2
                WHERE t2.template_id = tasks.template_id AND t2.due_date = tasks.due_date
              )
        """)
    _add_column(conn, "tasks", "reminded_at TEXT")


def init_database(path: Path | None = None) -> Path:
    """
    Ensure the database exists and is initialized. Creates file and all tables/indexes.
    Returns the path to the database file.
    """
    db_path = path or get_db_path()
    db_path = db_path.resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_SCHEMA)
        _migrate_legacy_tasks(conn)
        # One occurrence per (template, date); NULL template_id never collides
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_template_occurrence "
            "ON tasks(template_id, occurrence_date)"
        )
        conn.commit()
    finally:
        conn.close()
    return db_path


def get_connection(path: Path | None = None) -> sqlite3.Connection:
    """Return a connection to the database, initializing it if needed."""
    db_path = init_database(path)
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def migrate() -> Path:
    """Run database init + migrations. Use this to migrate manually: python -m database"""
    return init_database()


if __name__ == "__main__":
    p = migrate()
    print("Database migrated:", p)
