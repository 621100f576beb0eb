from __future__ import annotations

import contextlib
import sqlite3
import uuid
from collections.abc import Iterator

from pdv_sync.core.errors import StorageError


@contextlib.contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Read-modify-write atómico; anida vía SAVEPOINT si ya hay transacción.

    Los errores de SQLite se traducen a ``StorageError`` para que los
    llamadores no dependan del driver.
    """
    try:
        if connection.in_transaction:
            savepoint_name = f"sp_{uuid.uuid4().hex}"
            connection.execute(f"SAVEPOINT {savepoint_name}")
            try:
                yield connection
                connection.execute(f"RELEASE SAVEPOINT {savepoint_name}")
            except Exception:
                connection.execute(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
                connection.execute(f"RELEASE SAVEPOINT {savepoint_name}")
                raise
            return

        connection.execute("BEGIN IMMEDIATE")
        try:
            yield connection
            connection.execute("COMMIT")
        except Exception:
            connection.execute("ROLLBACK")
            raise
    except sqlite3.Error as exc:
        raise StorageError(f"Fallo de almacenamiento local: {exc}") from exc
