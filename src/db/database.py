from __future__ import annotations

import sqlite3

from src.config.settings import settings


def get_connection() -> sqlite3.Connection:
    db_path = settings.state_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


async def init_db() -> None:
    conn = get_connection()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS scripts (
                id              TEXT PRIMARY KEY,
                name            TEXT NOT NULL,
                project_id      TEXT,
                user_id         TEXT,
                created_at      DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS test_runs (
                id              TEXT PRIMARY KEY,
                script_id       TEXT NOT NULL,
                project_id      TEXT,
                user_id         TEXT,
                status          TEXT NOT NULL,
                started_at      TEXT NOT NULL,
                completed_at    TEXT,
                report_url      TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_scripts_project ON scripts(project_id);
            CREATE INDEX IF NOT EXISTS idx_runs_script ON test_runs(script_id);
            CREATE INDEX IF NOT EXISTS idx_runs_project ON test_runs(project_id);
            CREATE INDEX IF NOT EXISTS idx_runs_user ON test_runs(user_id);
            """
        )
        conn.commit()
    finally:
        conn.close()
