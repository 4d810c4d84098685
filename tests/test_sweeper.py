"""Tests for the periodic background sweeper."""

import asyncio
import logging

import pytest

from marketplace.core.sweeper import PeriodicSweeper


def test_run_once_returns_removed_count() -> None:
    sweeper = PeriodicSweeper("test", lambda: 3, interval_seconds=60)

    assert sweeper.run_once() == 3


def test_run_once_logs_and_swallows_callback_errors(caplog: pytest.LogCaptureFixture) -> None:
    def _boom() -> int:
        raise RuntimeError("store unavailable")

    sweeper = PeriodicSweeper("test", _boom, interval_seconds=60)

    with caplog.at_level(logging.ERROR, logger="marketplace.core.sweeper"):
        assert sweeper.run_once() == 0

    assert any(record.getMessage() == "sweeper.failed" for record in caplog.records)


def test_invalid_interval_rejected() -> None:
    with pytest.raises(ValueError):
        PeriodicSweeper("test", lambda: 0, interval_seconds=0)


def test_loop_runs_until_stopped() -> None:
    calls: list[int] = []

    def _callback() -> int:
        calls.append(1)
        return 0

    async def scenario() -> int:
        sweeper = PeriodicSweeper("test", _callback, interval_seconds=0.01)
        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.1)
        await sweeper.stop()
        assert not sweeper.running
        seen = len(calls)
        await asyncio.sleep(0.05)
        return seen

    seen = asyncio.run(scenario())

    assert seen >= 1
    assert len(calls) == seen


def test_loop_survives_failing_callback() -> None:
    calls: list[int] = []

    def _flaky() -> int:
        calls.append(1)
        raise RuntimeError("transient")

    async def scenario() -> None:
        sweeper = PeriodicSweeper("test", _flaky, interval_seconds=0.01)
        sweeper.start()
        await asyncio.sleep(0.1)
        assert sweeper.running
        await sweeper.stop()

    asyncio.run(scenario())

    assert len(calls) >= 2


def test_start_is_idempotent_and_stop_without_start_is_safe() -> None:
    async def scenario() -> None:
        sweeper = PeriodicSweeper("test", lambda: 0, interval_seconds=60)
        await sweeper.stop()

        sweeper.start()
        first_task = sweeper._task
        sweeper.start()
        assert sweeper._task is first_task

        await sweeper.stop()
        await sweeper.stop()
        assert not sweeper.running

    asyncio.run(scenario())
