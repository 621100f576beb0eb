from __future__ import annotations

import logging

from pdv_sync.application.conflicts_service import ConflictsService
from pdv_sync.core.observability import log_event
from pdv_sync.domain.models import PRODUCT_ENTITY, PullSummary
from pdv_sync.domain.ports import CatalogRemotePort, EntityMirrorPort, MutationQueuePort
from pdv_sync.domain.time_utils import is_newer

logger = logging.getLogger(__name__)


class RemoteChangePuller:
    """Aplica sobre la copia local los cambios del servidor posteriores a ``since``.

    Una entidad actualizada en el servidor que además tiene una edición local
    pendiente no se sobrescribe: se registra un conflicto y la edición local
    queda a la espera de resolución.
    """

    def __init__(
        self,
        remote: CatalogRemotePort,
        mirror: EntityMirrorPort,
        queue: MutationQueuePort,
        conflicts: ConflictsService,
    ) -> None:
        self._remote = remote
        self._mirror = mirror
        self._queue = queue
        self._conflicts = conflicts

    async def pull(self, since: str) -> PullSummary:
        changes = await self._remote.pull_changes(since)
        applied = skipped_stale = conflicts = deleted = 0

        for entity in changes.updated_entities:
            entity_id = entity.get("id")
            if entity_id in (None, ""):
                logger.warning("Producto remoto sin id ignorado: %s", entity)
                continue
            entity_id = str(entity_id)
            current = self._mirror.get(entity_id)
            if current is not None and not is_newer(entity, current):
                skipped_stale += 1
                continue
            pending = self._queue.find_pending_for(entity_id)
            if pending is not None:
                if not self._conflicts.has_unresolved(entity_id, PRODUCT_ENTITY):
                    self._conflicts.store_conflict(
                        PRODUCT_ENTITY,
                        entity_id,
                        pending.payload,
                        entity,
                        pending.action,
                        mutation_id=pending.id,
                    )
                    conflicts += 1
                continue
            self._mirror.upsert(entity)
            applied += 1

        for entity_id in changes.deleted_entity_ids:
            self._mirror.delete(str(entity_id))
            deleted += 1

        summary = PullSummary(
            applied=applied,
            skipped_stale=skipped_stale,
            conflicts=conflicts,
            deleted=deleted,
        )
        log_event(
            logger,
            "remote_pull_applied",
            since=since,
            applied=applied,
            skipped_stale=skipped_stale,
            conflicts=conflicts,
            deleted=deleted,
        )
        return summary
