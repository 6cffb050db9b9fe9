from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from src.core.logger import get_logger
from src.core.project_index import ProjectIndex
from src.core.run_management import RunManagement, ScriptDirectory
from src.state.report_state import ReportListItem, Run, parse_timestamp, status_value, to_list_item

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _run_sort_key(run: Run) -> tuple[bool, datetime, datetime]:
    completed = parse_timestamp(run.get("completed_at"))
    started = parse_timestamp(run.get("started_at")) or _EPOCH
    return (completed is not None, completed or _EPOCH, started)


class ReportCatalog:
    """Read side of generated reports.

    The project ledgers answer first. Reports generated before the ledgers
    existed are found by probing every stored run for an artifact.
    """

    def __init__(
        self,
        index: ProjectIndex,
        runs: RunManagement,
        report_url_for: Callable[[str], str],
        scripts: ScriptDirectory | None = None,
    ):
        self.index = index
        self.runs = runs
        self.report_url_for = report_url_for
        self.scripts = scripts

    async def list(self, project_id: str | None = None, user_id: str | None = None) -> list[ReportListItem]:
        indexed = self._from_index(project_id)
        if indexed:
            logger.info("catalog.index_hit", project_id=project_id, count=len(indexed))
            return indexed
        results = await self._from_runs(project_id, user_id)
        logger.info("catalog.fallback", project_id=project_id, user_id=user_id, count=len(results))
        return results

    def _from_index(self, project_id: str | None) -> list[ReportListItem]:
        if project_id:
            entries = self.index.read(project_id)
        else:
            merged = [entry for ledger in self.index.list_all() for entry in ledger["entries"]]
            # Each ledger is newest first already; the stable sort interleaves them.
            entries = sorted(merged, key=lambda e: parse_timestamp(e.get("createdAt")) or _EPOCH, reverse=True)
        return [to_list_item(entry) for entry in entries]

    async def _from_runs(self, project_id: str | None, user_id: str | None) -> list[ReportListItem]:
        runs = await self.runs.list_runs(project_id=project_id, user_id=user_id)
        names: dict[str, str | None] = {}
        results: list[ReportListItem] = []
        for run in sorted(runs, key=_run_sort_key, reverse=True):
            url = self.report_url_for(run["id"])
            if not url:
                continue
            results.append(
                {
                    "id": run["id"],
                    "scriptName": await self._script_name(run.get("script_id"), names),
                    "status": status_value(run.get("status")) or None,
                    "startedAt": run.get("started_at"),
                    "completedAt": run.get("completed_at"),
                    "reportUrl": url,
                }
            )
        return results

    async def _script_name(self, script_id: str | None, cache: dict[str, str | None]) -> str | None:
        if not script_id or self.scripts is None:
            return None
        if script_id not in cache:
            script = await self.scripts.get_script(script_id)
            cache[script_id] = script["name"] if script else None
        return cache[script_id]
