from __future__ import annotations

import asyncio

import pytest

from pdv_sync.application.scheduling import PeriodicTask


@pytest.mark.asyncio
async def test_periodic_task_fires_repeatedly_until_cancelled() -> None:
    ticks: list[int] = []

    async def _tick() -> None:
        ticks.append(len(ticks))

    task = PeriodicTask("test-tick", 0.01, _tick)
    task.start()
    await asyncio.sleep(0.08)
    task.cancel()
    fired = len(ticks)
    await asyncio.sleep(0.05)

    assert fired >= 2
    assert len(ticks) <= fired + 1
    assert not task.is_running


@pytest.mark.asyncio
async def test_cancel_lets_in_flight_run_finish() -> None:
    started = asyncio.Event()
    finished: list[bool] = []

    async def _slow() -> None:
        started.set()
        await asyncio.sleep(0.05)
        finished.append(True)

    task = PeriodicTask("test-slow", 0.01, _slow)
    task.start()
    await started.wait()
    task.cancel()
    await task.wait_in_flight()

    assert finished == [True]


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_the_timer(monkeypatch) -> None:
    calls: list[int] = []
    logged: list[str] = []
    monkeypatch.setattr(
        "pdv_sync.application.scheduling.log_operational_error",
        lambda message, *, exc, extra=None: logged.append(message),
    )

    async def _flaky() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    task = PeriodicTask("test-flaky", 0.01, _flaky)
    task.start()
    await asyncio.sleep(0.06)
    task.cancel()
    await task.wait_in_flight()

    assert len(calls) >= 2
    assert logged and "test-flaky" in logged[0]


def test_interval_must_be_positive() -> None:
    async def _noop() -> None:
        return None

    with pytest.raises(ValueError):
        PeriodicTask("bad", 0, _noop)
