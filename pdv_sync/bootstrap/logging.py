from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pdv_sync.core.observability import get_correlation_id, get_operation_name

DEFAULT_LOG_MAX_BYTES = 1_048_576
DEFAULT_LOG_BACKUP_COUNT = 10
MAIN_LOG_NAME = "sync.log"
OPERATIONAL_ERROR_LOG_NAME = "operational_error.log"
CRASH_LOG_NAME = "crash.log"

operational_logger = logging.getLogger("pdv_sync.operational_error")


class JsonLinesFormatter(logging.Formatter):
    """Un evento JSON por línea; ``correlation_id`` agrupa las líneas de un ciclo."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        operation = get_operation_name()
        if operation:
            event["operation"] = operation
        payload = getattr(record, "extra", None)
        if isinstance(payload, dict) and payload:
            event["extra"] = payload
        if record.exc_info:
            event["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(event, ensure_ascii=False, default=str)


class LevelBandFilter(logging.Filter):
    """Deja pasar solo los registros con nivel dentro de ``[low, high]``."""

    def __init__(self, low: int, high: int = logging.CRITICAL) -> None:
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno <= self.high


@dataclass(frozen=True)
class _LogFile:
    name: str
    band: tuple[int, int] | None


# El log operativo recoge solo ERROR; los CRITICAL van únicamente a crash.log.
_LOG_FILES = (
    _LogFile(MAIN_LOG_NAME, None),
    _LogFile(OPERATIONAL_ERROR_LOG_NAME, (logging.ERROR, logging.ERROR)),
    _LogFile(CRASH_LOG_NAME, (logging.CRITICAL, logging.CRITICAL)),
)


def _max_bytes_from_env() -> int:
    try:
        return int(os.environ.get("PDV_SYNC_LOG_MAX_BYTES", DEFAULT_LOG_MAX_BYTES))
    except ValueError:
        return DEFAULT_LOG_MAX_BYTES


def configure_logging(
    log_dir: Path,
    *,
    max_bytes: int | None = None,
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
    level: int = logging.INFO,
    console: bool = False,
) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    max_bytes = max_bytes or _max_bytes_from_env()
    formatter = JsonLinesFormatter()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    for log_file in _LOG_FILES:
        handler = RotatingFileHandler(
            log_dir / log_file.name,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(formatter)
        if log_file.band is None:
            handler.setLevel(level)
        else:
            handler.setLevel(log_file.band[0])
            handler.addFilter(LevelBandFilter(*log_file.band))
        root_logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(level)
        stream_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        root_logger.addHandler(stream_handler)


def log_operational_error(
    message: str,
    *,
    exc: BaseException,
    extra: dict[str, Any] | None = None,
) -> None:
    """Registra un fallo capturado en segundo plano en ``operational_error.log``."""
    metadata = dict(extra or {})
    correlation_id = metadata.get("correlation_id") or get_correlation_id()
    if correlation_id:
        metadata["correlation_id"] = correlation_id
    operational_logger.error(
        message,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"correlation_id": correlation_id, "extra": metadata},
    )


def install_exception_hook() -> None:
    from pdv_sync.bootstrap.exception_handler import handle_global_exception

    def _hook(exc_type, exc, tb) -> None:
        incident_id = handle_global_exception(exc_type, exc, tb)
        sys.stderr.write(f"Error inesperado. ID de incidente: {incident_id}\n")

    sys.excepthook = _hook
