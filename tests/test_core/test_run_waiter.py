from __future__ import annotations

import asyncio
import time

import pytest

from src.core.run_management import RunCompletionNotifier
from src.core.run_waiter import DEFAULT_WAIT_ATTEMPTS, DEFAULT_WAIT_INTERVAL_SEC, TestRunWaiter


def test_default_ceiling_is_thirty_one_second_polls(fake_runs):
    waiter = TestRunWaiter(fake_runs)
    assert (DEFAULT_WAIT_ATTEMPTS, DEFAULT_WAIT_INTERVAL_SEC) == (30, 1.0)
    assert waiter.attempts == 30
    assert waiter.interval_sec == 1.0


@pytest.mark.asyncio
async def test_wait_stops_on_terminal_status(fake_runs):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("r1", "s1", "2024-01-01T00:00:00+00:00", status="queued")
    fake_runs.status_plan["r1"] = ["queued", "running", "passed"]

    outcome = await TestRunWaiter(fake_runs, attempts=10, interval_sec=0.001).wait("r1")

    assert outcome.status == "passed"
    assert outcome.attempts == 3
    assert outcome.timed_out is False
    assert fake_runs.get_calls["r1"] == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["passed", "failed", "completed"])
async def test_every_terminal_status_ends_wait(fake_runs, terminal):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("r1", "s1", "2024-01-01T00:00:00+00:00", status=terminal)
    outcome = await TestRunWaiter(fake_runs, attempts=5, interval_sec=0.001).wait("r1")
    assert outcome.status == terminal
    assert outcome.attempts == 1


@pytest.mark.asyncio
async def test_ceiling_reached_returns_current_status(fake_runs):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("r1", "s1", "2024-01-01T00:00:00+00:00", status="running")

    outcome = await TestRunWaiter(fake_runs, attempts=4, interval_sec=0.001).wait("r1")

    assert outcome.timed_out is True
    assert outcome.status == "running"
    assert outcome.attempts == 4
    assert fake_runs.get_calls["r1"] == 4


@pytest.mark.asyncio
async def test_notifier_wakes_waiter_before_interval(fake_runs):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("r1", "s1", "2024-01-01T00:00:00+00:00", status="running")
    notifier = RunCompletionNotifier()
    waiter = TestRunWaiter(fake_runs, attempts=30, interval_sec=5.0, notifier=notifier)

    async def _finish() -> None:
        await asyncio.sleep(0.05)
        fake_runs.runs["r1"]["status"] = "failed"
        notifier.publish("r1", "failed")

    start = time.time()
    task = asyncio.create_task(_finish())
    outcome = await asyncio.wait_for(waiter.wait("r1"), timeout=3)
    await task

    assert outcome.status == "failed"
    assert outcome.timed_out is False
    assert time.time() - start < 3
    assert notifier.publish("r1", "failed") == 0


def test_publish_without_waiters_is_noop():
    assert RunCompletionNotifier().publish("nobody", "passed") == 0
