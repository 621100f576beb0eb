from __future__ import annotations

import json
import logging
import traceback
import uuid
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from pdv_sync.bootstrap.logging import CRASH_LOG_NAME
from pdv_sync.bootstrap.settings import resolve_log_dir
from pdv_sync.core.observability import generate_correlation_id, get_correlation_id, set_correlation_id

CRASH_LOGGER_NAME = "pdv_sync.global_exception"


def generate_incident_id() -> str:
    return f"INC-{uuid.uuid4().hex[:12].upper()}"


def _ensure_correlation_id() -> str:
    current = get_correlation_id()
    if not current:
        current = generate_correlation_id()
        set_correlation_id(current)
    return current


@dataclass(frozen=True)
class Incident:
    """Excepción no controlada junto con los identificadores que se muestran al operador."""

    incident_id: str
    correlation_id: str
    exc_type: type[BaseException]
    exc_value: BaseException
    exc_traceback: TracebackType | None

    @property
    def exc_info(self) -> tuple[type[BaseException], BaseException, TracebackType | None]:
        return (self.exc_type, self.exc_value, self.exc_traceback)

    def crash_record(self, *, logging_failure: BaseException | None = None) -> dict[str, Any]:
        record: dict[str, Any] = {
            "incident_id": self.incident_id,
            "correlation_id": self.correlation_id,
            "error_type": self.exc_type.__name__,
            "error_message": str(self.exc_value),
            "stacktrace": "".join(traceback.format_exception(*self.exc_info)),
        }
        if logging_failure is not None:
            record["logging_failure"] = f"{type(logging_failure).__name__}: {logging_failure}"
        return record


def open_incident(
    exc_type: type[BaseException], exc_value: BaseException, exc_traceback: TracebackType | None
) -> Incident:
    return Incident(
        incident_id=generate_incident_id(),
        correlation_id=_ensure_correlation_id(),
        exc_type=exc_type,
        exc_value=exc_value,
        exc_traceback=exc_traceback,
    )


def _write_fallback_crash_log(incident: Incident, *, logging_failure: BaseException | None = None) -> None:
    """Escribe el incidente directamente en crash.log cuando el logging no está operativo."""
    log_dir = resolve_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    line = json.dumps(incident.crash_record(logging_failure=logging_failure), ensure_ascii=False)
    with (log_dir / CRASH_LOG_NAME).open("a", encoding="utf-8") as crash_file:
        crash_file.write(line + "\n")


def handle_global_exception(
    exc_type: type[BaseException], exc_value: BaseException, exc_traceback: TracebackType | None
) -> str:
    incident = open_incident(exc_type, exc_value, exc_traceback)
    try:
        logging.getLogger(CRASH_LOGGER_NAME).critical(
            "Excepción no controlada. incident_id=%s",
            incident.incident_id,
            exc_info=incident.exc_info,
            extra={"correlation_id": incident.correlation_id, "extra": {"incident_id": incident.incident_id}},
        )
    except Exception as logging_failure:  # noqa: BLE001
        _write_fallback_crash_log(incident, logging_failure=logging_failure)
    return incident.incident_id
