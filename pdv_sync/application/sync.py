from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from pdv_sync.application.conflicts_service import ConflictsService
from pdv_sync.application.operations import apply_to_mirror, dispatch_operation
from pdv_sync.application.remote_pull import RemoteChangePuller
from pdv_sync.application.scheduling import PeriodicTask
from pdv_sync.bootstrap.logging import log_operational_error
from pdv_sync.core.errors import ConflictError, is_retryable
from pdv_sync.core.metrics import measure_time, metrics_registry
from pdv_sync.core.observability import OperationContext, log_event
from pdv_sync.domain.models import MutationRecord, MutationStatus, SyncCycleReport, SyncState
from pdv_sync.domain.ports import CatalogRemotePort, EntityMirrorPort, MutationQueuePort
from pdv_sync.domain.time_utils import EPOCH_ISO, utc_now_iso

logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncState], Any]

DEFAULT_SYNC_INTERVAL_SECONDS = 30.0


class SyncOrchestrator:
    """Reenvía la cola de mutaciones y después descarga los cambios remotos.

    Los ciclos son mutuamente excluyentes: la bandera ``is_syncing`` se activa
    antes del primer ``await``, así que una petición recibida durante un ciclo
    se descarta en lugar de encolarse.
    """

    def __init__(
        self,
        queue: MutationQueuePort,
        remote: CatalogRemotePort,
        puller: RemoteChangePuller,
        conflicts: ConflictsService,
        mirror: EntityMirrorPort,
        *,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        is_online: bool = False,
    ) -> None:
        self._queue = queue
        self._remote = remote
        self._puller = puller
        self._conflicts = conflicts
        self._mirror = mirror
        self._interval_seconds = interval_seconds
        self._is_online = is_online
        self._is_syncing = False
        self._listeners: list[SyncListener] = []
        self._timer: PeriodicTask | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._last_report: SyncCycleReport | None = None

    @property
    def state(self) -> SyncState:
        return SyncState(is_online=self._is_online, is_syncing=self._is_syncing)

    @property
    def last_report(self) -> SyncCycleReport | None:
        return self._last_report

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: SyncListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_online(self, online: bool) -> None:
        if online == self._is_online:
            return
        self._is_online = online
        logger.info("Conectividad %s", "restablecida" if online else "perdida")
        self._notify()
        if online:
            self.request_sync()

    def request_sync(self) -> asyncio.Task[bool] | None:
        """Programa un ciclo en segundo plano si hay conexión y ninguno en curso."""
        if not self._is_online or self._is_syncing:
            return None
        task = asyncio.get_running_loop().create_task(self.try_sync())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def try_sync(self) -> bool:
        if self._is_syncing:
            logger.debug("Sincronización en curso; petición descartada")
            return False
        if not self._is_online:
            return False
        self._is_syncing = True
        self._notify()
        try:
            with OperationContext("sync_cycle"):
                report = await self._run_cycle()
        except Exception as exc:
            log_operational_error("Fallo inesperado en el ciclo de sincronización", exc=exc)
            return False
        finally:
            self._is_syncing = False
            self._notify()
        self._last_report = report
        return report.completed

    def start(self) -> None:
        if self._timer is not None and self._timer.is_running:
            return
        self._timer = PeriodicTask("pdv-sync-cycle", self._interval_seconds, self.try_sync)
        self._timer.start()
        self.request_sync()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    async def aclose(self) -> None:
        self.stop()
        if self._timer is not None:
            await self._timer.wait_in_flight()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    @measure_time("latency.sync_cycle_ms")
    async def _run_cycle(self) -> SyncCycleReport:
        metrics_registry.increment("sync_cycles")
        report = SyncCycleReport(started_at=utc_now_iso())
        # Solo corre un ciclo a la vez: todo lo que siga en syncing quedó huérfano.
        recovered = self._queue.requeue_interrupted()
        pending = self._queue.list_pending()
        log_event(logger, "sync_cycle_started", pending=len(pending), recovered=len(recovered))

        for record in pending:
            if self._conflicts.has_unresolved(record.entity_id, record.entity_type):
                report.skipped.append(record.id)
                continue
            if not await self._replay(record):
                report.failed = record.id
                log_event(logger, "sync_cycle_aborted", failed=record.id, replayed=len(report.replayed))
                return report
            report.replayed.append(record.id)

        requested_at = utc_now_iso()
        since = self._queue.get_last_sync_timestamp() or EPOCH_ISO
        try:
            report.pulled = await self._puller.pull(since)
        except Exception as exc:
            log_operational_error("Fallo al descargar cambios remotos", exc=exc, extra={"since": since})
            return report
        self._queue.set_last_sync_timestamp(requested_at)
        log_event(
            logger,
            "sync_cycle_completed",
            replayed=len(report.replayed),
            skipped=len(report.skipped),
            watermark=requested_at,
        )
        return report

    async def _replay(self, record: MutationRecord) -> bool:
        self._queue.mark_status(record.id, MutationStatus.SYNCING)
        operation = record.operation()
        try:
            result = await dispatch_operation(self._remote, operation)
        except ConflictError as exc:
            self._queue.mark_status(record.id, MutationStatus.ERROR, last_error=str(exc), retryable=False)
            self._conflicts.store_conflict(
                record.entity_type,
                record.entity_id,
                record.payload,
                exc.server_data or {},
                record.action,
                mutation_id=record.id,
            )
            metrics_registry.increment("mutations_failed")
            return False
        except Exception as exc:
            retryable = is_retryable(exc)
            self._queue.mark_status(record.id, MutationStatus.ERROR, last_error=str(exc), retryable=retryable)
            metrics_registry.increment("mutations_failed")
            log_operational_error(
                "Fallo al reenviar mutación",
                exc=exc,
                extra={"mutation_id": record.id, "action": record.action.value, "retryable": retryable},
            )
            return False

        updated = self._queue.mark_status(record.id, MutationStatus.SYNCED, result=result)
        if updated.status is MutationStatus.SYNCED:
            apply_to_mirror(self._mirror, operation, result)
        metrics_registry.increment("mutations_synced")
        return True

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Listener de estado de sincronización falló")
