from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pdv_sync.bootstrap.logging import log_operational_error

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Handle cancelable de una tarea periódica sobre el event loop actual.

    Cancelar el handle detiene el temporizador pero deja terminar la ejecución
    que ya estaba en curso: cada disparo es una tarea propia y el bucle solo
    espera a que acabe con ``asyncio.wait``, que no la cancela ni propaga su
    excepción (se registra en ``_on_tick_done``).
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds debe ser positivo")
        self.name = name
        self._interval_seconds = interval_seconds
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait_in_flight(self) -> None:
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            tick = asyncio.ensure_future(self._callback())
            self._in_flight.add(tick)
            tick.add_done_callback(self._on_tick_done)
            await asyncio.wait({tick})

    def _on_tick_done(self, tick: asyncio.Future[Any]) -> None:
        self._in_flight.discard(tick)
        if tick.cancelled():
            return
        exc = tick.exception()
        if exc is not None:
            log_operational_error(f"Fallo en tarea periódica {self.name}", exc=exc)
