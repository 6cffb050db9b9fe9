from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest

from src.config.settings import settings
from src.core.errors import NotFoundError
from src.core.project_index import InMemoryIndexStore, ProjectIndex
from src.core.report_generator import ReportGenerator
from src.core.report_service import ReportService
from src.core.result_store import ResultStore
from src.core.run_waiter import TestRunWaiter
from src.state.report_state import Run, RunStatus, ScriptInfo, utc_now_iso

MISSING_TOOL = "definitely-missing-report-tool-7f3a"


class FakeRunManagement:
    """In-memory run management and script directory.

    ``status_plan`` maps a run id to the statuses successive ``get_run`` calls
    report; the last one sticks.
    """

    def __init__(self) -> None:
        self.runs: dict[str, Run] = {}
        self.scripts: dict[str, ScriptInfo] = {}
        self.status_plan: dict[str, list[str]] = {}
        self.created: list[str] = []
        self.get_calls: dict[str, int] = {}
        self.create_error: Exception | None = None
        self.initial_plan: list[str] | None = None

    def add_script(self, script_id: str, name: str, project_id: str | None, user_id: str | None = None) -> ScriptInfo:
        script: ScriptInfo = {"id": script_id, "name": name, "project_id": project_id, "user_id": user_id}
        self.scripts[script_id] = script
        return script

    def add_run(
        self,
        run_id: str,
        script_id: str,
        started_at: str,
        status: str = RunStatus.PASSED.value,
        completed_at: str | None = None,
        report_url: str | None = None,
        user_id: str | None = None,
    ) -> Run:
        script = self.scripts.get(script_id)
        run: Run = {
            "id": run_id,
            "script_id": script_id,
            "project_id": script["project_id"] if script else None,
            "user_id": user_id or (script["user_id"] if script else None),
            "status": status,
            "started_at": started_at,
            "completed_at": completed_at,
            "report_url": report_url,
        }
        self.runs[run_id] = run
        return run

    async def create_run(self, script_id: str) -> Run:
        if self.create_error is not None:
            raise self.create_error
        run_id = f"run_new_{len(self.created) + 1}"
        run = self.add_run(run_id, script_id, utc_now_iso(), status=RunStatus.QUEUED.value)
        self.created.append(run_id)
        if self.initial_plan is not None:
            self.status_plan[run_id] = list(self.initial_plan)
        return run

    async def get_run(self, run_id: str) -> Run | None:
        self.get_calls[run_id] = self.get_calls.get(run_id, 0) + 1
        run = self.runs.get(run_id)
        if run is None:
            return None
        plan = self.status_plan.get(run_id)
        if plan:
            run["status"] = plan.pop(0) if len(plan) > 1 else plan[0]
        return dict(run)  # type: ignore[return-value]

    async def list_runs(
        self,
        script_id: str | None = None,
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Run]:
        out = []
        for run in self.runs.values():
            if script_id and run["script_id"] != script_id:
                continue
            if project_id and run["project_id"] != project_id:
                continue
            if user_id and run["user_id"] != user_id:
                continue
            out.append(dict(run))
        return out  # type: ignore[return-value]

    async def set_report_url(self, run_id: str, url: str) -> None:
        if run_id not in self.runs:
            raise NotFoundError(run_id)
        self.runs[run_id]["report_url"] = url

    async def get_script(self, script_id: str) -> ScriptInfo | None:
        return self.scripts.get(script_id)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "STATE_DB_PATH", str(tmp_path / "state.db"))
    monkeypatch.setattr(settings, "RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.setattr(settings, "REPORTS_ROOT", str(tmp_path / "reports"))
    monkeypatch.setattr(settings, "INDEX_DIR", "")
    monkeypatch.setattr(settings, "REPORT_TOOL_COMMAND", MISSING_TOOL)
    monkeypatch.setattr(settings, "RUN_WAIT_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "RUN_WAIT_INTERVAL_SEC", 0.01)


@pytest.fixture()
def fake_runs() -> FakeRunManagement:
    return FakeRunManagement()


@pytest.fixture()
def result_store(tmp_path: Path) -> ResultStore:
    return ResultStore(tmp_path / "results")


@pytest.fixture()
def generator(tmp_path: Path, result_store: ResultStore) -> ReportGenerator:
    return ReportGenerator(
        result_store,
        tmp_path / "reports",
        url_prefix="/execution-reports",
        tool_command=MISSING_TOOL,
        tool_timeout_sec=5,
        reserved_names={"by-project"},
    )


@pytest.fixture()
def index_store() -> InMemoryIndexStore:
    return InMemoryIndexStore()


@pytest.fixture()
def project_index(index_store: InMemoryIndexStore) -> ProjectIndex:
    return ProjectIndex(index_store)


@pytest.fixture()
def service(fake_runs: FakeRunManagement, generator: ReportGenerator, project_index: ProjectIndex) -> ReportService:
    waiter = TestRunWaiter(fake_runs, attempts=5, interval_sec=0.001)
    return ReportService(runs=fake_runs, scripts=fake_runs, generator=generator, index=project_index, waiter=waiter)


@pytest.fixture()
async def client() -> Any:
    from src.api.app import create_app
    from src.db.database import init_db

    await init_db()
    app = create_app()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
