from __future__ import annotations

import sqlite3
from pathlib import Path

from pdv_sync.bootstrap.settings import resolve_appdata_dir

DB_FILENAME = "pdv_sync.db"
DEFAULT_BUSY_TIMEOUT_MS = 30000

# WAL permite que el bucle de sync escriba mientras la caja lee el catálogo.
_SESSION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


def default_db_path() -> Path:
    return resolve_appdata_dir() / "runtime" / DB_FILENAME


def configure_sqlite_connection(connection: sqlite3.Connection, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
    connection.row_factory = sqlite3.Row
    for pragma in _SESSION_PRAGMAS:
        connection.execute(pragma)
    connection.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")


def get_connection(db_path: Path | None = None, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> sqlite3.Connection:
    """Abre la base local en modo autocommit; las transacciones las delimita ``sqlite_uow``."""
    path = db_path or default_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, timeout=max(1.0, busy_timeout_ms / 1000), isolation_level=None)
    configure_sqlite_connection(connection, busy_timeout_ms=busy_timeout_ms)
    return connection
