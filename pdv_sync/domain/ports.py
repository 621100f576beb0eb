from __future__ import annotations

from typing import Any, Protocol

from pdv_sync.domain.models import (
    ConflictRecord,
    MutationAction,
    MutationRecord,
    MutationStatus,
    PullResult,
)


class KeyValueStorePort(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self, prefix: str = "") -> list[str]:
        ...


class MutationQueuePort(Protocol):
    def enqueue(self, action: MutationAction, payload: dict[str, Any]) -> str:
        ...

    def get(self, mutation_id: str) -> MutationRecord | None:
        ...

    def list_pending(self) -> list[MutationRecord]:
        ...

    def find_pending_for(self, entity_id: str) -> MutationRecord | None:
        ...

    def mark_status(self, mutation_id: str, status: MutationStatus, **extra: Any) -> MutationRecord:
        ...

    def requeue_interrupted(self) -> list[str]:
        ...

    def get_last_sync_timestamp(self) -> str | None:
        ...

    def set_last_sync_timestamp(self, timestamp: str) -> None:
        ...


class ConflictStorePort(Protocol):
    def add(self, conflict: ConflictRecord) -> None:
        ...

    def get(self, conflict_id: str) -> ConflictRecord | None:
        ...

    def list_all(self) -> list[ConflictRecord]:
        ...

    def save(self, conflict: ConflictRecord) -> None:
        ...

    def remove_resolved(self) -> int:
        ...

    def clear(self) -> None:
        ...


class EntityMirrorPort(Protocol):
    def get(self, entity_id: str) -> dict[str, Any] | None:
        ...

    def upsert(self, entity: dict[str, Any]) -> None:
        ...

    def delete(self, entity_id: str) -> None:
        ...


class CatalogRemotePort(Protocol):
    async def create_product(self, payload: dict[str, Any]) -> dict[str, Any]:
        ...

    async def update_product(self, product_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        ...

    async def delete_product(self, product_id: str) -> dict[str, Any]:
        ...

    async def pull_changes(self, since: str) -> PullResult:
        ...


class ConnectivityProbePort(Protocol):
    async def is_online(self) -> bool:
        ...

    async def check(self) -> tuple[bool, float | None, str]:
        ...


class LocalStoreProbePort(Protocol):
    def check(self) -> dict[str, tuple[bool, str, str]]:
        ...


class SqlConnectionPort(Protocol):
    def cursor(self) -> Any:
        ...

    def close(self) -> None:
        ...
