from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from pdv_sync.domain.models import (
    PRODUCT_ENTITY,
    MutationAction,
    MutationRecord,
    MutationStatus,
    generate_local_id,
)
from pdv_sync.domain.time_utils import utc_now_iso
from pdv_sync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from pdv_sync.infrastructure.sqlite_uow import transaction

logger = logging.getLogger(__name__)

SYNC_QUEUE_KEY = "sync_queue"
LAST_SYNC_KEY = "last_sync"

_ALLOWED_TRANSITIONS: dict[MutationStatus, frozenset[MutationStatus]] = {
    MutationStatus.PENDING: frozenset({MutationStatus.SYNCING}),
    MutationStatus.SYNCING: frozenset({MutationStatus.SYNCED, MutationStatus.ERROR}),
    MutationStatus.ERROR: frozenset({MutationStatus.SYNCING}),
    MutationStatus.SYNCED: frozenset(),
}


class MutationQueueStore:
    """Cola persistente de mutaciones guardada bajo la clave ``sync_queue``.

    El orden de la lista es el orden de inserción y define el orden de
    replay. Cada operación es un read-modify-write dentro de una única
    transacción SQLite.
    """

    def __init__(self, kv_store: SQLiteKeyValueStore) -> None:
        self._kv = kv_store

    def enqueue(
        self,
        action: MutationAction,
        payload: dict[str, Any],
        *,
        entity_type: str = PRODUCT_ENTITY,
    ) -> str:
        action = MutationAction(action)
        raw_id = payload.get("id")
        mutation_id = str(raw_id) if raw_id not in (None, "") else generate_local_id()
        record = MutationRecord(
            id=mutation_id,
            action=action,
            entity_type=entity_type,
            payload={**payload, "id": raw_id if raw_id not in (None, "") else mutation_id},
            created_at=utc_now_iso(),
        )
        with transaction(self._kv.connection):
            queue = self._load()
            position = self._index_of(queue, mutation_id)
            if position is None:
                queue.append(record)
            else:
                queue[position] = record
            self._store(queue)
        logger.info(
            "Mutación encolada id=%s action=%s replaced=%s",
            mutation_id,
            action.value,
            position is not None,
        )
        return mutation_id

    def get(self, mutation_id: str) -> MutationRecord | None:
        queue = self._load()
        position = self._index_of(queue, mutation_id)
        return None if position is None else queue[position]

    def list_all(self) -> list[MutationRecord]:
        return self._load()

    def list_pending(self) -> list[MutationRecord]:
        """Registros a reenviar, del más antiguo al más reciente.

        Incluye los ``error`` reintentables: la entrega es al menos una vez.
        """
        return [record for record in self._load() if record.is_replayable]

    def find_pending_for(self, entity_id: str) -> MutationRecord | None:
        for record in self._load():
            if record.entity_id == str(entity_id) and record.status in (
                MutationStatus.PENDING,
                MutationStatus.ERROR,
            ):
                return record
        return None

    def mark_status(self, mutation_id: str, status: MutationStatus, **extra: Any) -> MutationRecord:
        status = MutationStatus(status)
        with transaction(self._kv.connection):
            queue = self._load()
            position = self._index_of(queue, mutation_id)
            if position is None:
                raise KeyError(f"Mutación no encontrada en la cola: {mutation_id}")
            record = queue[position]
            if record.status is MutationStatus.PENDING and status in (MutationStatus.SYNCED, MutationStatus.ERROR):
                # Re-encolada mientras se enviaba: la edición nueva sigue pendiente.
                logger.info("Mutación %s reemplazada durante el envío; se mantiene pendiente", mutation_id)
                return record
            if status is not record.status and status not in _ALLOWED_TRANSITIONS[record.status]:
                raise ValueError(
                    f"Transición inválida para {mutation_id}: {record.status.value} -> {status.value}"
                )
            record.status = status
            for field_name in ("last_error", "result", "retryable"):
                if field_name in extra:
                    setattr(record, field_name, extra[field_name])
            if status is MutationStatus.SYNCED:
                record.last_error = None
            self._store(queue)
        return record

    def requeue_interrupted(self) -> list[str]:
        """Devuelve a ``pending`` los registros que un envío interrumpido dejó en ``syncing``."""
        with transaction(self._kv.connection):
            queue = self._load()
            interrupted = [record for record in queue if record.status is MutationStatus.SYNCING]
            for record in interrupted:
                record.status = MutationStatus.PENDING
            if interrupted:
                self._store(queue)
        if interrupted:
            logger.warning("Mutaciones interrumpidas devueltas a la cola: %s", [record.id for record in interrupted])
        return [record.id for record in interrupted]

    def prune_synced(self) -> int:
        with transaction(self._kv.connection):
            queue = self._load()
            remaining = [record for record in queue if record.status is not MutationStatus.SYNCED]
            self._store(remaining)
        return len(queue) - len(remaining)

    def counts_by_status(self) -> dict[str, int]:
        counts = Counter(record.status.value for record in self._load())
        return {status.value: counts.get(status.value, 0) for status in MutationStatus}

    def get_last_sync_timestamp(self) -> str | None:
        value = self._kv.get(LAST_SYNC_KEY)
        return str(value) if value else None

    def set_last_sync_timestamp(self, timestamp: str) -> None:
        self._kv.set(LAST_SYNC_KEY, timestamp)

    def _load(self) -> list[MutationRecord]:
        return [MutationRecord.from_dict(item) for item in self._kv.get(SYNC_QUEUE_KEY) or []]

    def _store(self, queue: list[MutationRecord]) -> None:
        self._kv.set(SYNC_QUEUE_KEY, [record.to_dict() for record in queue])

    @staticmethod
    def _index_of(queue: list[MutationRecord], mutation_id: str) -> int | None:
        for index, record in enumerate(queue):
            if record.id == mutation_id:
                return index
        return None
