from __future__ import annotations

import logging
from typing import Any

from pdv_sync.application.operations import apply_to_mirror, dispatch_operation
from pdv_sync.application.sync import SyncOrchestrator
from pdv_sync.core.errors import NetworkError
from pdv_sync.core.metrics import metrics_registry
from pdv_sync.domain.models import (
    PRODUCT_ENTITY,
    MutationAction,
    ProductOperation,
    QueuedMutation,
    build_operation,
)
from pdv_sync.domain.ports import CatalogRemotePort, EntityMirrorPort, MutationQueuePort

logger = logging.getLogger(__name__)


class ProductSyncService:
    """Fachada de mutaciones de catálogo para la UI.

    Con conexión llama directamente al servidor; sin conexión, o ante un
    fallo de red, encola la mutación y devuelve un ``QueuedMutation``.
    """

    def __init__(
        self,
        remote: CatalogRemotePort,
        queue: MutationQueuePort,
        mirror: EntityMirrorPort,
        orchestrator: SyncOrchestrator,
    ) -> None:
        self._remote = remote
        self._queue = queue
        self._mirror = mirror
        self._orchestrator = orchestrator

    async def create_product(self, payload: dict[str, Any]) -> dict[str, Any] | QueuedMutation:
        return await self._execute(MutationAction.CREATE, dict(payload))

    async def update_product(self, product_id: object, payload: dict[str, Any]) -> dict[str, Any] | QueuedMutation:
        return await self._execute(MutationAction.UPDATE, {**payload, "id": product_id})

    async def delete_product(self, product_id: object) -> dict[str, Any] | QueuedMutation:
        return await self._execute(MutationAction.DELETE, {"id": product_id})

    async def _execute(self, action: MutationAction, payload: dict[str, Any]) -> dict[str, Any] | QueuedMutation:
        entity_id = payload.get("id")
        if not self._orchestrator.state.is_online:
            return self._enqueue(action, payload)
        if entity_id not in (None, "") and self._queue.find_pending_for(str(entity_id)) is not None:
            # Una edición anterior sigue en cola: la nueva va detrás para conservar el orden.
            return self._enqueue(action, payload)
        operation = build_operation(action, str(entity_id) if entity_id is not None else "", payload)
        try:
            result = await self._send(operation)
        except NetworkError as exc:
            logger.warning("Fallo de red en %s; se encola la mutación: %s", action.value, exc)
            return self._enqueue(action, payload)
        apply_to_mirror(self._mirror, operation, result)
        return result

    async def _send(self, operation: ProductOperation) -> dict[str, Any]:
        return await dispatch_operation(self._remote, operation)

    def _enqueue(self, action: MutationAction, payload: dict[str, Any]) -> QueuedMutation:
        mutation_id = self._queue.enqueue(action, payload, entity_type=PRODUCT_ENTITY)
        metrics_registry.increment("mutations_enqueued")
        self._orchestrator.request_sync()
        return QueuedMutation(mutation_id=mutation_id, action=action)
