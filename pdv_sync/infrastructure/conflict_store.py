from __future__ import annotations

from pdv_sync.domain.models import ConflictRecord
from pdv_sync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from pdv_sync.infrastructure.sqlite_uow import transaction

CONFLICTS_KEY = "conflicts"


class KeyValueConflictStore:
    def __init__(self, kv_store: SQLiteKeyValueStore) -> None:
        self._kv = kv_store

    def add(self, conflict: ConflictRecord) -> None:
        with transaction(self._kv.connection):
            conflicts = self._load()
            conflicts.append(conflict)
            self._store(conflicts)

    def get(self, conflict_id: str) -> ConflictRecord | None:
        for conflict in self._load():
            if conflict.id == conflict_id:
                return conflict
        return None

    def list_all(self) -> list[ConflictRecord]:
        return self._load()

    def save(self, conflict: ConflictRecord) -> None:
        with transaction(self._kv.connection):
            conflicts = self._load()
            for index, existing in enumerate(conflicts):
                if existing.id == conflict.id:
                    if existing.resolved and not conflict.resolved:
                        raise ValueError(f"El conflicto {conflict.id} ya estaba resuelto")
                    conflicts[index] = conflict
                    break
            else:
                raise KeyError(f"Conflicto no encontrado: {conflict.id}")
            self._store(conflicts)

    def remove_resolved(self) -> int:
        with transaction(self._kv.connection):
            conflicts = self._load()
            unresolved = [conflict for conflict in conflicts if not conflict.resolved]
            self._store(unresolved)
        return len(conflicts) - len(unresolved)

    def clear(self) -> None:
        self._kv.delete(CONFLICTS_KEY)

    def _load(self) -> list[ConflictRecord]:
        return [ConflictRecord.from_dict(item) for item in self._kv.get(CONFLICTS_KEY) or []]

    def _store(self, conflicts: list[ConflictRecord]) -> None:
        self._kv.set(CONFLICTS_KEY, [conflict.to_dict() for conflict in conflicts])
