from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Union

PRODUCT_ENTITY = "product"
LOCAL_ID_PREFIX = "local_"


def generate_local_id() -> str:
    return f"{LOCAL_ID_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def is_local_id(value: object) -> bool:
    return isinstance(value, str) and value.startswith(LOCAL_ID_PREFIX)


class MutationAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class ResolutionStrategy(str, Enum):
    LOCAL = "local"
    SERVER = "server"
    MERGE = "merge"
    CUSTOM = "custom"


@dataclass(frozen=True)
class CreateProduct:
    payload: dict[str, Any]


@dataclass(frozen=True)
class UpdateProduct:
    entity_id: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class DeleteProduct:
    entity_id: str


ProductOperation = Union[CreateProduct, UpdateProduct, DeleteProduct]


def build_operation(action: MutationAction, entity_id: str, payload: dict[str, Any]) -> ProductOperation:
    if action is MutationAction.CREATE:
        return CreateProduct(payload=dict(payload))
    if action is MutationAction.UPDATE:
        return UpdateProduct(entity_id=entity_id, payload=dict(payload))
    if action is MutationAction.DELETE:
        return DeleteProduct(entity_id=entity_id)
    raise ValueError(f"Acción de sincronización desconocida: {action!r}")


@dataclass
class MutationRecord:
    """Mutación local pendiente de enviarse al catálogo remoto.

    ``id`` es estable por edición lógica: volver a encolar la misma entidad
    reemplaza el registro en lugar de duplicarlo.
    """

    id: str
    action: MutationAction
    entity_type: str
    payload: dict[str, Any]
    created_at: str
    status: MutationStatus = MutationStatus.PENDING
    last_error: str | None = None
    result: Any = None
    retryable: bool = True

    @property
    def entity_id(self) -> str:
        return str(self.payload.get("id", self.id))

    @property
    def is_replayable(self) -> bool:
        if self.status is MutationStatus.PENDING:
            return True
        return self.status is MutationStatus.ERROR and self.retryable

    def operation(self) -> ProductOperation:
        return build_operation(self.action, self.entity_id, self.payload)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MutationRecord:
        return cls(
            id=str(data["id"]),
            action=MutationAction(data["action"]),
            entity_type=data.get("entity_type", PRODUCT_ENTITY),
            payload=dict(data.get("payload") or {}),
            created_at=data.get("created_at", ""),
            status=MutationStatus(data.get("status", MutationStatus.PENDING.value)),
            last_error=data.get("last_error"),
            result=data.get("result"),
            retryable=bool(data.get("retryable", True)),
        )


@dataclass
class ConflictRecord:
    id: str
    entity_type: str
    entity_id: str
    local_data: dict[str, Any]
    server_data: dict[str, Any]
    operation: MutationAction
    detected_at: str
    resolved: bool = False
    resolution_strategy: ResolutionStrategy | None = None
    resolved_at: str | None = None
    resolved_data: dict[str, Any] | None = None
    mutation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["operation"] = self.operation.value
        data["resolution_strategy"] = self.resolution_strategy.value if self.resolution_strategy else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConflictRecord:
        strategy = data.get("resolution_strategy")
        return cls(
            id=str(data["id"]),
            entity_type=data["entity_type"],
            entity_id=str(data["entity_id"]),
            local_data=dict(data.get("local_data") or {}),
            server_data=dict(data.get("server_data") or {}),
            operation=MutationAction(data["operation"]),
            detected_at=data.get("detected_at", ""),
            resolved=bool(data.get("resolved", False)),
            resolution_strategy=ResolutionStrategy(strategy) if strategy else None,
            resolved_at=data.get("resolved_at"),
            resolved_data=data.get("resolved_data"),
            mutation_id=data.get("mutation_id"),
        )


@dataclass(frozen=True)
class SyncState:
    is_online: bool
    is_syncing: bool


@dataclass(frozen=True)
class PullResult:
    updated_entities: tuple[dict[str, Any], ...] = ()
    deleted_entity_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class PullSummary:
    applied: int = 0
    skipped_stale: int = 0
    conflicts: int = 0
    deleted: int = 0


@dataclass(frozen=True)
class QueuedMutation:
    """Respuesta provisional para la UI cuando la mutación quedó encolada."""

    mutation_id: str
    action: MutationAction
    queued: bool = True


@dataclass(frozen=True)
class ConflictResolution:
    conflict_id: str
    strategy: ResolutionStrategy
    resolved_data: dict[str, Any] | None
    success: bool = True


@dataclass
class SyncCycleReport:
    started_at: str
    replayed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: str | None = None
    pulled: PullSummary | None = None

    @property
    def completed(self) -> bool:
        return self.failed is None and self.pulled is not None


@dataclass(frozen=True)
class SyncConfig:
    api_base_url: str
    api_token: str = ""
    sync_interval_seconds: float = 30.0
    request_timeout_seconds: float = 10.0
    connectivity_check_seconds: float = 15.0
    db_path: str = ""
    device_id: str = ""


@dataclass(frozen=True)
class HealthCheckItem:
    key: str
    status: str
    message: str
    action_id: str
    category: str


@dataclass(frozen=True)
class HealthReport:
    generated_at: str
    checks: tuple[HealthCheckItem, ...]

    @property
    def is_healthy(self) -> bool:
        return all(check.status != "ERROR" for check in self.checks)
