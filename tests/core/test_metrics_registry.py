from __future__ import annotations

import asyncio
import inspect
from threading import Thread
from time import sleep

import pytest

from pdv_sync.core import metrics


def test_increment_counter() -> None:
    registry = metrics.MetricsRegistry()

    registry.increment("mutations_enqueued")
    registry.increment("mutations_enqueued", 2)

    assert registry.counter("mutations_enqueued") == 3
    assert registry.counter("never_touched") == 0


def test_record_timing() -> None:
    registry = metrics.MetricsRegistry()

    registry.record_timing("latency.sync_cycle_ms", 12.5)

    snapshot = registry.snapshot()
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["count"] == 1
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["last"] == 12.5


def test_decorator_measures_sync_callable(monkeypatch) -> None:
    registry = metrics.MetricsRegistry()
    monkeypatch.setattr(metrics, "metrics_registry", registry)

    @metrics.measure_time("latency.decorator_ms")
    def _operation() -> str:
        sleep(0.01)
        return "ok"

    assert _operation() == "ok"
    assert registry.snapshot()["timings_ms"]["latency.decorator_ms"]["last"] > 0


@pytest.mark.asyncio
async def test_decorator_measures_coroutines_and_keeps_them_awaitable(monkeypatch) -> None:
    registry = metrics.MetricsRegistry()
    monkeypatch.setattr(metrics, "metrics_registry", registry)

    @metrics.measure_time("latency.async_ms")
    async def _operation() -> str:
        await asyncio.sleep(0.01)
        return "ok"

    assert inspect.iscoroutinefunction(_operation)
    assert await _operation() == "ok"
    assert registry.snapshot()["timings_ms"]["latency.async_ms"]["count"] == 1


@pytest.mark.asyncio
async def test_decorator_records_timing_even_when_coroutine_fails(monkeypatch) -> None:
    registry = metrics.MetricsRegistry()
    monkeypatch.setattr(metrics, "metrics_registry", registry)

    @metrics.measure_time("latency.failing_ms")
    async def _operation() -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await _operation()

    assert registry.snapshot()["timings_ms"]["latency.failing_ms"]["count"] == 1


def test_snapshot_returns_consistent_data() -> None:
    registry = metrics.MetricsRegistry()

    registry.increment("sync_cycles")
    registry.record_timing("latency.sync_cycle_ms", 10)
    registry.record_timing("latency.sync_cycle_ms", 30)

    snapshot = registry.snapshot()

    assert snapshot["counters"]["sync_cycles"] == 1
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["count"] == 2
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["avg"] == 20
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["max"] == 30


def test_basic_thread_safety() -> None:
    registry = metrics.MetricsRegistry()

    def _worker() -> None:
        for _ in range(200):
            registry.increment("conflicts_detected")
            registry.record_timing("latency.sync_cycle_ms", 1.0)

    threads = [Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    snapshot = registry.snapshot()
    assert snapshot["counters"]["conflicts_detected"] == 1600
    assert snapshot["timings_ms"]["latency.sync_cycle_ms"]["count"] == 1600


def test_reset_clears_counters_and_timings() -> None:
    registry = metrics.MetricsRegistry()
    registry.increment("sync_cycles")
    registry.record_timing("latency.sync_cycle_ms", 5)

    registry.reset()

    assert registry.snapshot() == {"counters": {}, "timings_ms": {}}


def test_p95_uses_recent_window() -> None:
    registry = metrics.MetricsRegistry()

    for value in range(1, 101):
        registry.record_timing("latency.sync_cycle_ms", float(value))

    stats = registry.snapshot()["timings_ms"]["latency.sync_cycle_ms"]
    assert stats["p95"] == 95.0
    assert stats["count"] == 100


def test_window_is_bounded_but_totals_are_not() -> None:
    registry = metrics.MetricsRegistry()

    for _ in range(metrics.TIMING_WINDOW):
        registry.record_timing("latency.sync_cycle_ms", 1000.0)
    for _ in range(metrics.TIMING_WINDOW):
        registry.record_timing("latency.sync_cycle_ms", 1.0)

    stats = registry.snapshot()["timings_ms"]["latency.sync_cycle_ms"]
    assert stats["count"] == 2 * metrics.TIMING_WINDOW
    assert stats["max"] == 1000.0
    assert stats["p95"] == 1.0
