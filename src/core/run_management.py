"""Interfaces of the collaborators the report engine consumes.

Run execution, script storage and project lookup live outside the engine.
The engine only talks to them through the protocols below.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from src.core.logger import get_logger
from src.state.report_state import Run, ScriptInfo, status_value

logger = get_logger(__name__)


class RunManagement(Protocol):
    async def create_run(self, script_id: str) -> Run: ...

    async def get_run(self, run_id: str) -> Run | None: ...

    async def list_runs(
        self,
        script_id: str | None = None,
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Run]: ...

    async def set_report_url(self, run_id: str, url: str) -> None: ...


class ScriptDirectory(Protocol):
    async def get_script(self, script_id: str) -> ScriptInfo | None: ...


class RunCompletionNotifier:
    """Hands out futures that resolve when a run reports a terminal status.

    Publishers never block on subscribers; a run nobody waits for is ignored.
    """

    def __init__(self) -> None:
        self._waiters: dict[str, list[asyncio.Future]] = {}

    def subscribe(self, run_id: str) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(run_id, []).append(future)
        return future

    def unsubscribe(self, run_id: str, future: asyncio.Future) -> None:
        waiters = self._waiters.get(run_id, [])
        if future in waiters:
            waiters.remove(future)
        if not waiters:
            self._waiters.pop(run_id, None)

    def publish(self, run_id: str, status: object) -> int:
        value = status_value(status)
        delivered = 0
        for future in list(self._waiters.get(run_id, [])):
            loop = future.get_loop()
            if future.done() or loop.is_closed():
                continue
            loop.call_soon_threadsafe(_resolve, future, value)
            delivered += 1
        if delivered:
            logger.info("run.completion.published", run_id=run_id, status=value, waiters=delivered)
        return delivered


def _resolve(future: asyncio.Future, value: str) -> None:
    if not future.done():
        future.set_result(value)


completion_notifier = RunCompletionNotifier()
