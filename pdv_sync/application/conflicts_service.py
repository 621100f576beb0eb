from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from pdv_sync.application.operations import apply_to_mirror, dispatch_operation
from pdv_sync.bootstrap.logging import log_operational_error
from pdv_sync.core.errors import (
    ConflictNotFoundError,
    InvalidStrategyError,
    MissingCustomDataError,
)
from pdv_sync.core.metrics import metrics_registry
from pdv_sync.core.observability import log_event
from pdv_sync.domain.models import (
    ConflictRecord,
    ConflictResolution,
    MutationAction,
    MutationStatus,
    ResolutionStrategy,
    build_operation,
)
from pdv_sync.domain.ports import (
    CatalogRemotePort,
    ConflictStorePort,
    EntityMirrorPort,
    MutationQueuePort,
)
from pdv_sync.domain.time_utils import is_newer, utc_now_iso

logger = logging.getLogger(__name__)


def generate_conflict_id(entity_type: str, entity_id: object) -> str:
    return f"{entity_type}:{entity_id}:{int(time.time() * 1000)}:{uuid.uuid4()}"


def merge_snapshots(local_data: dict[str, Any], server_data: dict[str, Any]) -> dict[str, Any]:
    """Superpone el snapshot más reciente sobre el más antiguo.

    Sin ``updated_at`` un snapshot cuenta como la época; en empate gana el
    servidor.
    """
    if is_newer(local_data, server_data):
        return {**server_data, **local_data}
    return {**local_data, **server_data}


def _parse_strategy(strategy: ResolutionStrategy | str) -> ResolutionStrategy:
    try:
        return ResolutionStrategy(strategy)
    except ValueError as exc:
        raise InvalidStrategyError(f"Estrategia de resolución desconocida: {strategy!r}") from exc


class ConflictsService:
    def __init__(
        self,
        store: ConflictStorePort,
        remote: CatalogRemotePort,
        mirror: EntityMirrorPort,
        queue: MutationQueuePort,
    ) -> None:
        self._store = store
        self._remote = remote
        self._mirror = mirror
        self._queue = queue

    def store_conflict(
        self,
        entity_type: str,
        entity_id: object,
        local_data: dict[str, Any],
        server_data: dict[str, Any],
        operation: MutationAction,
        *,
        mutation_id: str | None = None,
    ) -> str:
        conflict = ConflictRecord(
            id=generate_conflict_id(entity_type, entity_id),
            entity_type=entity_type,
            entity_id=str(entity_id),
            local_data=dict(local_data),
            server_data=dict(server_data),
            operation=MutationAction(operation),
            detected_at=utc_now_iso(),
            mutation_id=mutation_id,
        )
        self._store.add(conflict)
        metrics_registry.increment("conflicts_detected")
        log_event(
            logger,
            "conflict_detected",
            conflict_id=conflict.id,
            entity_id=conflict.entity_id,
            operation=conflict.operation.value,
            mutation_id=mutation_id,
        )
        return conflict.id

    async def resolve_conflict(
        self,
        conflict_id: str,
        strategy: ResolutionStrategy | str,
        custom_data: dict[str, Any] | None = None,
    ) -> ConflictResolution:
        conflict = self._store.get(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(f"Conflicto no encontrado: {conflict_id}")
        resolved_strategy = _parse_strategy(strategy)
        resolved_data = self._resolved_data(conflict, resolved_strategy, custom_data)

        conflict.resolved = True
        conflict.resolution_strategy = resolved_strategy
        conflict.resolved_at = utc_now_iso()
        conflict.resolved_data = resolved_data
        self._store.save(conflict)

        operation = build_operation(conflict.operation, conflict.entity_id, resolved_data)
        try:
            result = await dispatch_operation(self._remote, operation)
        except Exception as exc:
            log_operational_error(
                "Fallo al reenviar la resolución de conflicto",
                exc=exc,
                extra={"conflict_id": conflict.id, "strategy": resolved_strategy.value},
            )
            raise

        apply_to_mirror(self._mirror, operation, result)
        self._settle_superseded_mutation(conflict, result)
        removed = self._store.remove_resolved()
        metrics_registry.increment("conflicts_resolved")
        log_event(
            logger,
            "conflict_resolved",
            conflict_id=conflict.id,
            strategy=resolved_strategy.value,
            pruned=removed,
        )
        return ConflictResolution(
            conflict_id=conflict.id,
            strategy=resolved_strategy,
            resolved_data=resolved_data,
        )

    async def auto_resolve_conflicts(self) -> list[ConflictResolution]:
        """Resuelve cada conflicto pendiente quedándose con la versión más reciente."""
        resolutions: list[ConflictResolution] = []
        for conflict in self.get_unresolved_conflicts():
            strategy = (
                ResolutionStrategy.LOCAL
                if is_newer(conflict.local_data, conflict.server_data)
                else ResolutionStrategy.SERVER
            )
            try:
                resolutions.append(await self.resolve_conflict(conflict.id, strategy))
            except Exception as exc:  # noqa: BLE001
                log_operational_error(
                    "No se pudo autoresolver el conflicto",
                    exc=exc,
                    extra={"conflict_id": conflict.id, "strategy": strategy.value},
                )
                resolutions.append(
                    ConflictResolution(
                        conflict_id=conflict.id,
                        strategy=strategy,
                        resolved_data=None,
                        success=False,
                    )
                )
        return resolutions

    def get_unresolved_conflicts(self) -> list[ConflictRecord]:
        return [conflict for conflict in self._store.list_all() if not conflict.resolved]

    def get_resolved_conflicts(self, limit: int = 50) -> list[ConflictRecord]:
        resolved = [conflict for conflict in self._store.list_all() if conflict.resolved]
        resolved.sort(key=lambda conflict: conflict.resolved_at or "", reverse=True)
        return resolved[:limit]

    def remove_resolved_conflicts(self) -> int:
        return self._store.remove_resolved()

    def clear_all_conflicts(self) -> None:
        self._store.clear()
        logger.info("Conflictos eliminados por completo")

    def count_unresolved(self) -> int:
        return len(self.get_unresolved_conflicts())

    def has_unresolved(self, entity_id: object, entity_type: str | None = None) -> bool:
        for conflict in self.get_unresolved_conflicts():
            if conflict.entity_id != str(entity_id):
                continue
            if entity_type is None or conflict.entity_type == entity_type:
                return True
        return False

    @staticmethod
    def _resolved_data(
        conflict: ConflictRecord,
        strategy: ResolutionStrategy,
        custom_data: dict[str, Any] | None,
    ) -> dict[str, Any]:
        if strategy is ResolutionStrategy.LOCAL:
            return dict(conflict.local_data)
        if strategy is ResolutionStrategy.SERVER:
            return dict(conflict.server_data)
        if strategy is ResolutionStrategy.MERGE:
            return merge_snapshots(conflict.local_data, conflict.server_data)
        if custom_data is None:
            raise MissingCustomDataError("La estrategia custom requiere datos de resolución")
        return dict(custom_data)

    def _settle_superseded_mutation(self, conflict: ConflictRecord, result: Any) -> None:
        if conflict.mutation_id is None:
            return
        record = self._queue.get(conflict.mutation_id)
        if record is None or record.status is MutationStatus.SYNCED:
            return
        if record.payload != conflict.local_data:
            # Re-encolada con una edición posterior: la reenvía el próximo ciclo.
            logger.info("Mutación %s editada tras el conflicto; queda pendiente", record.id)
            return
        if record.status is not MutationStatus.SYNCING:
            self._queue.mark_status(record.id, MutationStatus.SYNCING)
        self._queue.mark_status(record.id, MutationStatus.SYNCED, result=result)
