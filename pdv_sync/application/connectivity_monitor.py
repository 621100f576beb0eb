from __future__ import annotations

import asyncio
import logging

from pdv_sync.application.scheduling import PeriodicTask
from pdv_sync.application.sync import SyncOrchestrator
from pdv_sync.domain.ports import ConnectivityProbePort

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 15.0


class ConnectivityMonitor:
    """Sondea periódicamente la API y traslada las transiciones al orquestador."""

    def __init__(
        self,
        probe: ConnectivityProbePort,
        orchestrator: SyncOrchestrator,
        *,
        interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
    ) -> None:
        self._probe = probe
        self._orchestrator = orchestrator
        self._interval_seconds = interval_seconds
        self._timer: PeriodicTask | None = None
        self._initial_check: asyncio.Task[bool] | None = None

    async def check_now(self) -> bool:
        online = await self._probe.is_online()
        logger.debug("Sondeo de conectividad: online=%s", online)
        self._orchestrator.set_online(online)
        return online

    def start(self) -> None:
        if self._timer is not None and self._timer.is_running:
            return
        self._timer = PeriodicTask("pdv-sync-connectivity", self._interval_seconds, self.check_now)
        self._timer.start()
        self._initial_check = asyncio.get_running_loop().create_task(self.check_now())

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    async def aclose(self) -> None:
        self.stop()
        if self._timer is not None:
            await self._timer.wait_in_flight()
        if self._initial_check is not None:
            await asyncio.gather(self._initial_check, return_exceptions=True)
