from __future__ import annotations

import inspect
import math
from collections import deque
from dataclasses import dataclass, field
from functools import wraps
from threading import Lock
from time import perf_counter
from typing import Any, Callable

TIMING_WINDOW = 512


@dataclass
class TimingStats:
    """Acumulado de una métrica de latencia; el p95 se calcula sobre la ventana reciente."""

    count: int = 0
    total: float = 0.0
    last: float = 0.0
    peak: float = 0.0
    window: deque[float] = field(default_factory=lambda: deque(maxlen=TIMING_WINDOW))

    def add(self, milliseconds: float) -> None:
        self.count += 1
        self.total += milliseconds
        self.last = milliseconds
        self.peak = max(self.peak, milliseconds)
        self.window.append(milliseconds)

    def p95(self) -> float:
        if not self.window:
            return 0.0
        ordered = sorted(self.window)
        rank = max(math.ceil(0.95 * len(ordered)) - 1, 0)
        return ordered[rank]

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "last": self.last,
            "avg": self.total / self.count if self.count else 0.0,
            "max": self.peak,
            "p95": self.p95(),
        }


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = {}
        self._timings: dict[str, TimingStats] = {}

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def record_timing(self, name: str, milliseconds: float) -> None:
        with self._lock:
            stats = self._timings.get(name)
            if stats is None:
                stats = self._timings[name] = TimingStats()
            stats.add(milliseconds)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings_ms": {name: stats.as_dict() for name, stats in self._timings.items()},
            }


metrics_registry = MetricsRegistry()


def measure_time(metric_name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Registra la duración de la llamada; admite funciones y corrutinas."""

    def _record(started: float) -> None:
        metrics_registry.record_timing(metric_name, (perf_counter() - started) * 1000)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def timed_coroutine(*args: Any, **kwargs: Any) -> Any:
                started = perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _record(started)

            return timed_coroutine

        @wraps(func)
        def timed_call(*args: Any, **kwargs: Any) -> Any:
            started = perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _record(started)

        return timed_call

    return decorator
