from __future__ import annotations

import json
import sqlite3
from typing import Any

from pdv_sync.core.errors import StorageError
from pdv_sync.domain.time_utils import utc_now_iso
from pdv_sync.infrastructure.sqlite_uow import transaction


class SQLiteKeyValueStore:
    """Almacén clave/valor JSON sobre la tabla ``kv_store``.

    Cada valor es un documento JSON completo; las escrituras son atómicas por
    clave, de modo que un fallo nunca deja un documento a medias.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = self._connection.execute(
                "SELECT value_json FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"No se pudo leer la clave '{key}': {exc}") from exc
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise StorageError(f"Valor corrupto en la clave '{key}'") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Valor no serializable para la clave '{key}': {exc}") from exc
        with transaction(self._connection):
            self._connection.execute(
                """
                INSERT INTO kv_store (key, value_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json, updated_at = excluded.updated_at
                """,
                (key, payload, utc_now_iso()),
            )

    def delete(self, key: str) -> None:
        with transaction(self._connection):
            self._connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        try:
            rows = self._connection.execute(
                "SELECT key FROM kv_store WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                (f"{escaped}%",),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"No se pudieron listar claves con prefijo '{prefix}': {exc}") from exc
        return [row[0] for row in rows]
