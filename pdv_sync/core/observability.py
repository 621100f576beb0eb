from __future__ import annotations

import logging
import uuid
from contextlib import AbstractContextManager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class TraceScope:
    correlation_id: str | None = None
    operation: str | None = None


# Cada tarea asyncio hereda una copia, así que un ciclo en segundo plano conserva su scope.
_SCOPE: ContextVar[TraceScope] = ContextVar("pdv_sync_trace_scope", default=TraceScope())


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def current_scope() -> TraceScope:
    return _SCOPE.get()


def get_correlation_id() -> str | None:
    return _SCOPE.get().correlation_id


def get_operation_name() -> str | None:
    return _SCOPE.get().operation


def set_correlation_id(correlation_id: str | None) -> Token[TraceScope]:
    return _SCOPE.set(replace(_SCOPE.get(), correlation_id=correlation_id))


class OperationContext(AbstractContextManager["OperationContext"]):
    """Agrupa bajo un mismo correlation_id todo lo que ocurre en una operación."""

    def __init__(self, operation_name: str, correlation_id: str | None = None) -> None:
        self.operation_name = operation_name
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Token[TraceScope] | None = None

    def __enter__(self) -> "OperationContext":
        self._token = _SCOPE.set(TraceScope(self.correlation_id, self.operation_name))
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> None:
        if self._token is not None:
            _SCOPE.reset(self._token)
            self._token = None


def log_event(logger: logging.Logger, event_name: str, **payload: Any) -> dict[str, Any]:
    scope = current_scope()
    event = {
        "event": event_name,
        "operation": scope.operation,
        "correlation_id": scope.correlation_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }
    logger.info(
        "sync_event=%s payload=%s",
        event_name,
        payload,
        extra={"correlation_id": scope.correlation_id, "extra": event},
    )
    return event
