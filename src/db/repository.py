from __future__ import annotations

from typing import Any
import uuid

from src.core.errors import NotFoundError
from src.core.logger import get_logger
from src.core.run_management import completion_notifier
from src.db.database import get_connection
from src.state.report_state import Run, RunStatus, ScriptInfo, is_terminal_status, status_value, utc_now_iso

logger = get_logger(__name__)


def _new_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


def _row_to_run(row: Any) -> Run:
    return {
        "id": row["id"],
        "script_id": row["script_id"],
        "project_id": row["project_id"],
        "user_id": row["user_id"],
        "status": row["status"],
        "started_at": row["started_at"],
        "completed_at": row["completed_at"],
        "report_url": row["report_url"],
    }


class ScriptRepository:
    @staticmethod
    async def create(name: str, project_id: str | None = None, user_id: str | None = None, script_id: str | None = None) -> ScriptInfo:
        script: ScriptInfo = {
            "id": script_id or f"scr_{uuid.uuid4().hex[:12]}",
            "name": name,
            "project_id": project_id,
            "user_id": user_id,
        }
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO scripts (id, name, project_id, user_id) VALUES (?, ?, ?, ?)",
                (script["id"], script["name"], script["project_id"], script["user_id"]),
            )
            conn.commit()
            logger.info("db.script.create", script_id=script["id"], project_id=project_id)
        finally:
            conn.close()
        return script

    @staticmethod
    async def get_script(script_id: str) -> ScriptInfo | None:
        conn = get_connection()
        try:
            row = conn.execute("SELECT id, name, project_id, user_id FROM scripts WHERE id=?", (script_id,)).fetchone()
            if not row:
                return None
            return {"id": row["id"], "name": row["name"], "project_id": row["project_id"], "user_id": row["user_id"]}
        finally:
            conn.close()


class RunRepository:
    @staticmethod
    async def create_run(script_id: str) -> Run:
        script = await ScriptRepository.get_script(script_id)
        if script is None:
            raise NotFoundError(f"Script {script_id} not found")
        run: Run = {
            "id": _new_run_id(),
            "script_id": script_id,
            "project_id": script["project_id"],
            "user_id": script["user_id"],
            "status": RunStatus.QUEUED.value,
            "started_at": utc_now_iso(),
            "completed_at": None,
            "report_url": None,
        }
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO test_runs (id, script_id, project_id, user_id, status, started_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (run["id"], run["script_id"], run["project_id"], run["user_id"], run["status"], run["started_at"]),
            )
            conn.commit()
            logger.info("db.run.create", run_id=run["id"], script_id=script_id)
        finally:
            conn.close()
        return run

    @staticmethod
    async def get_run(run_id: str) -> Run | None:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM test_runs WHERE id=?", (run_id,)).fetchone()
            return _row_to_run(row) if row else None
        finally:
            conn.close()

    @staticmethod
    async def list_runs(
        script_id: str | None = None,
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Run]:
        conn = get_connection()
        try:
            filters = []
            params: list[Any] = []
            if script_id:
                filters.append("script_id=?")
                params.append(script_id)
            if project_id:
                filters.append("project_id=?")
                params.append(project_id)
            if user_id:
                filters.append("user_id=?")
                params.append(user_id)
            where = f"WHERE {' AND '.join(filters)}" if filters else ""
            rows = conn.execute(f"SELECT * FROM test_runs {where} ORDER BY started_at DESC", params).fetchall()
            return [_row_to_run(row) for row in rows]
        finally:
            conn.close()

    @staticmethod
    async def set_report_url(run_id: str, url: str) -> None:
        conn = get_connection()
        try:
            conn.execute("UPDATE test_runs SET report_url=? WHERE id=?", (url, run_id))
            conn.commit()
            logger.info("db.run.report_url", run_id=run_id, report_url=url)
        finally:
            conn.close()

    @staticmethod
    async def update_status(run_id: str, status: RunStatus | str) -> Run:
        value = status_value(status)
        RunStatus(value)  # rejects unknown statuses
        conn = get_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE test_runs
                SET status=?,
                    completed_at=CASE WHEN ? THEN ? ELSE completed_at END
                WHERE id=?
                """,
                (value, int(is_terminal_status(value)), utc_now_iso(), run_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(f"Test run {run_id} not found")
            logger.info("db.run.status", run_id=run_id, status=value)
        finally:
            conn.close()
        if is_terminal_status(value):
            completion_notifier.publish(run_id, value)
        run = await RunRepository.get_run(run_id)
        if run is None:
            raise NotFoundError(f"Test run {run_id} not found")
        return run
