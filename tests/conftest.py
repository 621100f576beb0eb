from __future__ import annotations

import logging
import sqlite3
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pdv_sync.application.conflicts_service import ConflictsService
from pdv_sync.application.remote_pull import RemoteChangePuller
from pdv_sync.application.sync import SyncOrchestrator
from pdv_sync.core.metrics import metrics_registry
from pdv_sync.infrastructure.conflict_store import KeyValueConflictStore
from pdv_sync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from pdv_sync.infrastructure.migrations import run_migrations
from pdv_sync.infrastructure.product_mirror import ProductMirror
from pdv_sync.infrastructure.queue_store import MutationQueueStore
from tests.e2e_sync.fakes import FakeCatalogRemote


@pytest.fixture(autouse=True)
def _reset_metrics() -> None:
    metrics_registry.reset()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def connection() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def kv_store(connection: sqlite3.Connection) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(connection)


@pytest.fixture
def queue(kv_store: SQLiteKeyValueStore) -> MutationQueueStore:
    return MutationQueueStore(kv_store)


@pytest.fixture
def mirror(kv_store: SQLiteKeyValueStore) -> ProductMirror:
    return ProductMirror(kv_store)


@pytest.fixture
def conflict_store(kv_store: SQLiteKeyValueStore) -> KeyValueConflictStore:
    return KeyValueConflictStore(kv_store)


@pytest.fixture
def remote() -> FakeCatalogRemote:
    return FakeCatalogRemote()


@pytest.fixture
def conflicts_service(
    conflict_store: KeyValueConflictStore,
    remote: FakeCatalogRemote,
    mirror: ProductMirror,
    queue: MutationQueueStore,
) -> ConflictsService:
    return ConflictsService(conflict_store, remote, mirror, queue)


@pytest.fixture
def puller(
    remote: FakeCatalogRemote,
    mirror: ProductMirror,
    queue: MutationQueueStore,
    conflicts_service: ConflictsService,
) -> RemoteChangePuller:
    return RemoteChangePuller(remote, mirror, queue, conflicts_service)


@pytest.fixture
def orchestrator(
    queue: MutationQueueStore,
    remote: FakeCatalogRemote,
    puller: RemoteChangePuller,
    conflicts_service: ConflictsService,
    mirror: ProductMirror,
) -> SyncOrchestrator:
    return SyncOrchestrator(queue, remote, puller, conflicts_service, mirror, interval_seconds=3600)


@pytest.fixture
def online_orchestrator(
    queue: MutationQueueStore,
    remote: FakeCatalogRemote,
    puller: RemoteChangePuller,
    conflicts_service: ConflictsService,
    mirror: ProductMirror,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        queue,
        remote,
        puller,
        conflicts_service,
        mirror,
        interval_seconds=3600,
        is_online=True,
    )
