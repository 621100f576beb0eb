from __future__ import annotations

import sqlite3

import pytest

from pdv_sync.core.errors import StorageError
from pdv_sync.infrastructure.sqlite_uow import transaction


@pytest.fixture
def ledger() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("CREATE TABLE ledger (id INTEGER PRIMARY KEY, balance INTEGER NOT NULL)")
    conn.execute("INSERT INTO ledger (id, balance) VALUES (1, 100), (2, 100)")
    yield conn
    conn.close()


def _balance(conn: sqlite3.Connection, row_id: int) -> int:
    row = conn.execute("SELECT balance FROM ledger WHERE id = ?", (row_id,)).fetchone()
    return int(row["balance"]) if row else 0


def test_transaction_commits_compound_operation(ledger: sqlite3.Connection) -> None:
    with transaction(ledger):
        ledger.execute("UPDATE ledger SET balance = balance - 20 WHERE id = 1")
        ledger.execute("UPDATE ledger SET balance = balance + 20 WHERE id = 2")

    assert not ledger.in_transaction
    assert _balance(ledger, 1) == 80
    assert _balance(ledger, 2) == 120


def test_transaction_rolls_back_on_error(ledger: sqlite3.Connection) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        with transaction(ledger):
            ledger.execute("UPDATE ledger SET balance = balance - 50 WHERE id = 1")
            raise RuntimeError("boom")

    assert _balance(ledger, 1) == 100
    assert _balance(ledger, 2) == 100


def test_nested_transaction_isolates_inner_error_with_savepoint(ledger: sqlite3.Connection) -> None:
    with transaction(ledger):
        ledger.execute("UPDATE ledger SET balance = balance - 10 WHERE id = 1")

        with pytest.raises(ValueError):
            with transaction(ledger):
                ledger.execute("UPDATE ledger SET balance = balance + 999 WHERE id = 2")
                raise ValueError("rollback interno")

        ledger.execute("UPDATE ledger SET balance = balance + 10 WHERE id = 2")

    assert _balance(ledger, 1) == 90
    assert _balance(ledger, 2) == 110


def test_sqlite_errors_are_mapped_to_storage_error(ledger: sqlite3.Connection) -> None:
    with pytest.raises(StorageError):
        with transaction(ledger):
            ledger.execute("UPDATE missing_table SET balance = 0")

    assert not ledger.in_transaction
