from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from src.core.logger import get_logger
from src.core.run_management import RunManagement
from src.core.run_waiter import TestRunWaiter, WaitOutcome
from src.state.report_state import Run, parse_timestamp

logger = get_logger(__name__)

GenerateFn = Callable[[str], Awaitable[dict]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class SelectionResult:
    run_id: str
    report_url: str
    report_path: str | None = None
    cache_hit: bool = False
    created_run: bool = False
    wait: WaitOutcome | None = None

    def as_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "report_url": self.report_url,
            "report_path": self.report_path,
            "cache_hit": self.cache_hit,
            "created_run": self.created_run,
            "waited": self.wait is not None,
            "wait_timed_out": bool(self.wait and self.wait.timed_out),
        }


def order_runs_newest_first(runs: list[Run]) -> list[Run]:
    # Equal start times fall back to the run id, highest first.
    return sorted(
        runs,
        key=lambda run: (parse_timestamp(run.get("started_at")) or _EPOCH, str(run.get("id", ""))),
        reverse=True,
    )


class TestRunSelector:
    """Picks the run a script's report should come from.

    Reuses the newest run's report when it has one, otherwise reports on the
    newest run still lacking one, and only creates a run when the script has
    none at all.
    """

    __test__ = False

    def __init__(self, runs: RunManagement, waiter: TestRunWaiter, generate_report: GenerateFn):
        self.runs = runs
        self.waiter = waiter
        self.generate_report = generate_report

    async def select_and_generate(self, script_id: str, project_id: str | None = None) -> SelectionResult:
        runs = order_runs_newest_first(await self.runs.list_runs(script_id=script_id, project_id=project_id))
        logger.info("selector.runs", script_id=script_id, project_id=project_id, run_count=len(runs))

        if runs and runs[0].get("report_url"):
            latest = runs[0]
            logger.info("selector.cache_hit", script_id=script_id, run_id=latest["id"])
            return SelectionResult(run_id=latest["id"], report_url=str(latest["report_url"]), cache_hit=True)

        target = next((run for run in runs if not run.get("report_url")), None)
        if target is not None:
            logger.info("selector.reuse_run", script_id=script_id, run_id=target["id"])
            generated = await self.generate_report(target["id"])
            return SelectionResult(
                run_id=target["id"],
                report_url=generated["report_url"],
                report_path=generated["report_path"],
            )

        created = await self.runs.create_run(script_id)
        logger.info("selector.run_created", script_id=script_id, run_id=created["id"], status=created.get("status"))
        outcome = await self.waiter.wait(created["id"])
        generated = await self.generate_report(created["id"])
        return SelectionResult(
            run_id=created["id"],
            report_url=generated["report_url"],
            report_path=generated["report_path"],
            created_run=True,
            wait=outcome,
        )
