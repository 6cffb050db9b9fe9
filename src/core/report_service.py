from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from src.config.settings import settings
from src.core.errors import NotFoundError
from src.core.logger import get_logger
from src.core.project_index import FileIndexStore, ProjectIndex
from src.core.report_catalog import ReportCatalog
from src.core.report_generator import ReportGenerator
from src.core.result_store import ResultStore
from src.core.run_management import RunManagement, ScriptDirectory, completion_notifier
from src.core.run_selector import SelectionResult, TestRunSelector
from src.core.run_waiter import TestRunWaiter
from src.db.repository import RunRepository, ScriptRepository
from src.state.report_state import ReportListItem, Run, new_index_entry

logger = get_logger(__name__)


class ReportService:
    """Entry point used by the HTTP layer: generate, look up, list and prune reports."""

    def __init__(
        self,
        runs: RunManagement,
        scripts: ScriptDirectory,
        generator: ReportGenerator,
        index: ProjectIndex,
        waiter: TestRunWaiter | None = None,
    ):
        self.runs = runs
        self.scripts = scripts
        self.generator = generator
        self.index = index
        self.waiter = waiter or TestRunWaiter(runs)
        self.selector = TestRunSelector(runs, self.waiter, self.generate_report)
        self.catalog = ReportCatalog(index, runs, generator.get_report_url, scripts)

    async def generate_report(self, run_id: str, user_id: str | None = None) -> dict[str, Any]:
        run = await self.runs.get_run(run_id)
        if run is None or (user_id and run.get("user_id") and run.get("user_id") != user_id):
            raise NotFoundError(f"Test run {run_id} not found")

        report_path = await asyncio.to_thread(self.generator.generate, run_id)
        report_url = self.generator.get_report_url(run_id)
        if report_url:
            await self._record_report_url(run_id, report_url)
            await self._append_index(run, report_url)

        logger.info("report.request.done", run_id=run_id, report_url=report_url)
        return {"report_path": str(report_path), "report_url": report_url}

    async def generate_for_script(self, script_id: str, project_id: str | None = None) -> SelectionResult:
        script = await self.scripts.get_script(script_id)
        if script is None:
            raise NotFoundError(f"Script {script_id} not found")
        return await self.selector.select_and_generate(script_id, project_id or script.get("project_id"))

    def get_report_url(self, run_id: str) -> str:
        return self.generator.get_report_url(run_id)

    async def list_reports(self, project_id: str | None = None, user_id: str | None = None) -> list[ReportListItem]:
        return await self.catalog.list(project_id, user_id)

    def list_artifacts(self) -> list[dict[str, Any]]:
        return self.generator.list_artifacts()

    def cleanup(self, days_to_keep: int = 7) -> list[str]:
        return self.generator.cleanup(days_to_keep)

    async def _record_report_url(self, run_id: str, report_url: str) -> None:
        try:
            await self.runs.set_report_url(run_id, report_url)
        except Exception as exc:
            logger.warning("report.run_url.update_failed", run_id=run_id, error=str(exc))

    async def _append_index(self, run: Run, report_url: str) -> None:
        script_name = None
        project_id = run.get("project_id")
        try:
            script = await self.scripts.get_script(run["script_id"])
        except Exception as exc:
            logger.warning("report.index.script_lookup_failed", run_id=run["id"], error=str(exc))
            script = None
        if script is not None:
            script_name = script.get("name")
            project_id = project_id or script.get("project_id")
        if not project_id:
            logger.warning("report.index.no_project", run_id=run["id"])
            return
        self.index.append(project_id, new_index_entry(run, project_id, report_url, script_name))


def reserved_index_names(index_dir: Path, reports_root: Path) -> set[str]:
    """Top-level directory under the reports root that holds the ledgers, if any."""
    try:
        relative = index_dir.relative_to(reports_root)
    except ValueError:
        return set()
    return {relative.parts[0]} if relative.parts else set()


def resolve_retention_days(days: int | None) -> int:
    """Missing or zero falls back to the configured retention window."""
    return days or settings.REPORT_RETENTION_DAYS


def build_report_generator() -> ReportGenerator:
    reports_root = settings.reports_root_path
    index_dir = settings.index_dir_path
    reserved = reserved_index_names(index_dir, reports_root)
    return ReportGenerator(
        ResultStore(settings.results_dir_path),
        reports_root,
        url_prefix=settings.report_url_prefix,
        tool_command=settings.REPORT_TOOL_COMMAND,
        tool_timeout_sec=settings.REPORT_TOOL_TIMEOUT_SEC,
        reserved_names=reserved,
        stderr_cap_chars=settings.STDERR_CAP_CHARS,
    )


def build_report_service() -> ReportService:
    runs = RunRepository()
    waiter = TestRunWaiter(
        runs,
        attempts=settings.RUN_WAIT_ATTEMPTS,
        interval_sec=settings.RUN_WAIT_INTERVAL_SEC,
        notifier=completion_notifier,
    )
    return ReportService(
        runs=runs,
        scripts=ScriptRepository(),
        generator=build_report_generator(),
        index=ProjectIndex(FileIndexStore(settings.index_dir_path)),
        waiter=waiter,
    )
