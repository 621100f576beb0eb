from __future__ import annotations

import asyncio
import json
import sqlite3
import time
from typing import Callable

import httpx

from pdv_sync.infrastructure.conflict_store import CONFLICTS_KEY
from pdv_sync.infrastructure.migrations import MigrationRunner
from pdv_sync.infrastructure.queue_store import SYNC_QUEUE_KEY

_SYNC_ACTION = "open_sync_panel"
_DB_ACTION = "open_db_help"


def _host_and_port(base_url: str) -> tuple[str, int]:
    url = httpx.URL(base_url)
    port = url.port or (443 if url.scheme == "https" else 80)
    return url.host, port


class TcpConnectivityProbe:
    """Sustituto de los eventos online/offline: ¿se alcanza el host de la API?"""

    def __init__(self, base_url: str, *, timeout_seconds: float = 3.0) -> None:
        self._host, self._port = _host_and_port(base_url)
        self._timeout_seconds = timeout_seconds

    async def is_online(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=self._timeout_seconds,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def check(self) -> tuple[bool, float | None, str]:
        started = time.perf_counter()
        reachable = await self.is_online()
        if not reachable:
            return False, None, f"API no alcanzable en {self._host}:{self._port}."
        latency_ms = (time.perf_counter() - started) * 1000
        return True, latency_ms, f"Latencia aproximada API: {latency_ms:.0f} ms."


class SQLiteLocalStoreProbe:
    def __init__(self, connection_factory: Callable[[], sqlite3.Connection]) -> None:
        self._connection_factory = connection_factory

    def check(self) -> dict[str, tuple[bool, str, str]]:
        connection = self._connection_factory()
        try:
            connection.execute("SELECT 1").fetchone()
            migration_status = MigrationRunner(connection).status()
            pending_migrations = [item for item in migration_status if not item["applied"]]
            queue = self._load_json(connection, SYNC_QUEUE_KEY)
            conflicts = self._load_json(connection, CONFLICTS_KEY)
        except (sqlite3.Error, ValueError) as exc:
            return {
                "local_db": (False, f"Base de datos local no accesible: {exc}", _DB_ACTION),
                "migrations": (False, "No se pudo validar estado de migraciones.", _DB_ACTION),
                "queue": (False, "No se pudo leer la cola de sincronización.", _SYNC_ACTION),
                "conflicts": (False, "No se pudieron leer los conflictos.", _SYNC_ACTION),
            }
        finally:
            connection.close()

        failed = [item for item in queue if item.get("status") == "error"]
        blocked = [item for item in failed if not item.get("retryable", True)]
        unresolved = [item for item in conflicts if not item.get("resolved")]
        return {
            "local_db": (True, "Base de datos local accesible.", _DB_ACTION),
            "migrations": (
                not pending_migrations,
                "Migraciones al día." if not pending_migrations else "Hay migraciones pendientes.",
                _DB_ACTION,
            ),
            "queue": (
                not blocked,
                f"{len(queue)} mutaciones en cola, {len(failed)} con error."
                if not blocked
                else f"{len(blocked)} mutaciones requieren intervención manual.",
                _SYNC_ACTION,
            ),
            "conflicts": (
                not unresolved,
                "Sin conflictos pendientes." if not unresolved else f"{len(unresolved)} conflictos sin resolver.",
                _SYNC_ACTION,
            ),
        }

    @staticmethod
    def _load_json(connection: sqlite3.Connection, key: str) -> list[dict]:
        row = connection.execute("SELECT value_json FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return []
        value = json.loads(row[0])
        return value if isinstance(value, list) else []
