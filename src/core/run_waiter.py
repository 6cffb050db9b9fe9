from __future__ import annotations

import asyncio
from dataclasses import dataclass
import time

from src.core.logger import get_logger
from src.core.run_management import RunCompletionNotifier, RunManagement
from src.state.report_state import is_terminal_status, status_value

logger = get_logger(__name__)

DEFAULT_WAIT_ATTEMPTS = 30
DEFAULT_WAIT_INTERVAL_SEC = 1.0


@dataclass
class WaitOutcome:
    run_id: str
    status: str
    attempts: int
    timed_out: bool
    duration_sec: float


class TestRunWaiter:
    """Waits, with a fixed ceiling, for a freshly created run to finish.

    Every attempt pauses for ``interval_sec`` and then reads the run status.
    When a notifier is given the pause ends early once the run publishes a
    terminal status. Hitting the ceiling is not an error: the outcome carries
    ``timed_out=True`` and whatever status was last seen.
    """

    __test__ = False

    def __init__(
        self,
        runs: RunManagement,
        attempts: int = DEFAULT_WAIT_ATTEMPTS,
        interval_sec: float = DEFAULT_WAIT_INTERVAL_SEC,
        notifier: RunCompletionNotifier | None = None,
    ):
        self.runs = runs
        self.attempts = max(1, int(attempts))
        self.interval_sec = max(0.0, float(interval_sec))
        self.notifier = notifier

    async def wait(self, run_id: str) -> WaitOutcome:
        start = time.time()
        status = ""
        completion = self.notifier.subscribe(run_id) if self.notifier else None
        logger.info("run.wait.start", run_id=run_id, attempts=self.attempts, interval_sec=self.interval_sec)
        try:
            for attempt in range(1, self.attempts + 1):
                await self._pause(completion)
                run = await self.runs.get_run(run_id)
                if run is not None:
                    status = status_value(run.get("status"))
                if is_terminal_status(status):
                    logger.info("run.wait.terminal", run_id=run_id, status=status, attempt=attempt)
                    return WaitOutcome(run_id, status, attempt, False, time.time() - start)
        finally:
            if completion is not None:
                self.notifier.unsubscribe(run_id, completion)
                completion.cancel()

        logger.warning("run.wait.timeout", run_id=run_id, status=status, attempts=self.attempts)
        return WaitOutcome(run_id, status, self.attempts, True, time.time() - start)

    async def _pause(self, completion: asyncio.Future | None) -> None:
        if completion is None:
            await asyncio.sleep(self.interval_sec)
            return
        if completion.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(completion), timeout=self.interval_sec)
        except asyncio.TimeoutError:
            pass
