from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from pdv_sync.application.connectivity_monitor import ConnectivityMonitor
from pdv_sync.application.conflicts_service import ConflictsService
from pdv_sync.application.health_check import HealthCheckUseCase
from pdv_sync.application.product_sync_service import ProductSyncService
from pdv_sync.application.remote_pull import RemoteChangePuller
from pdv_sync.application.sync import SyncOrchestrator
from pdv_sync.domain.models import SyncConfig
from pdv_sync.domain.ports import CatalogRemotePort, ConnectivityProbePort
from pdv_sync.infrastructure.catalog_client import HttpCatalogClient
from pdv_sync.infrastructure.conflict_store import KeyValueConflictStore
from pdv_sync.infrastructure.db import get_connection
from pdv_sync.infrastructure.health_probes import SQLiteLocalStoreProbe, TcpConnectivityProbe
from pdv_sync.infrastructure.kv_store_sqlite import SQLiteKeyValueStore
from pdv_sync.infrastructure.local_config import SyncConfigStore
from pdv_sync.infrastructure.migrations import run_migrations
from pdv_sync.infrastructure.product_mirror import ProductMirror
from pdv_sync.infrastructure.queue_store import MutationQueueStore


@dataclass
class SyncContainer:
    config: SyncConfig
    connection: sqlite3.Connection
    queue: MutationQueueStore
    mirror: ProductMirror
    remote: CatalogRemotePort
    conflicts_service: ConflictsService
    orchestrator: SyncOrchestrator
    product_service: ProductSyncService
    connectivity_monitor: ConnectivityMonitor
    health_check_use_case: HealthCheckUseCase

    async def aclose(self) -> None:
        await self.connectivity_monitor.aclose()
        await self.orchestrator.aclose()
        close_remote = getattr(self.remote, "aclose", None)
        if close_remote is not None:
            await close_remote()
        self.connection.close()


ConnectionFactory = Callable[[], sqlite3.Connection]


def build_container(
    config: SyncConfig | None = None,
    *,
    connection_factory: ConnectionFactory | None = None,
    remote: CatalogRemotePort | None = None,
    connectivity_probe: ConnectivityProbePort | None = None,
) -> SyncContainer:
    config = config or SyncConfigStore().load()
    if connection_factory is None:
        db_path = Path(config.db_path) if config.db_path else None
        connection_factory = lambda: get_connection(db_path)  # noqa: E731

    connection = connection_factory()
    run_migrations(connection)

    kv_store = SQLiteKeyValueStore(connection)
    queue = MutationQueueStore(kv_store)
    mirror = ProductMirror(kv_store)
    conflict_store = KeyValueConflictStore(kv_store)

    if remote is None:
        remote = HttpCatalogClient(
            config.api_base_url,
            token=config.api_token or None,
            timeout_seconds=config.request_timeout_seconds,
        )
    probe = connectivity_probe or TcpConnectivityProbe(config.api_base_url)

    conflicts_service = ConflictsService(conflict_store, remote, mirror, queue)
    puller = RemoteChangePuller(remote, mirror, queue, conflicts_service)
    orchestrator = SyncOrchestrator(
        queue,
        remote,
        puller,
        conflicts_service,
        mirror,
        interval_seconds=config.sync_interval_seconds,
    )
    product_service = ProductSyncService(remote, queue, mirror, orchestrator)
    connectivity_monitor = ConnectivityMonitor(
        probe,
        orchestrator,
        interval_seconds=config.connectivity_check_seconds,
    )
    health_check_use_case = HealthCheckUseCase(
        probe,
        SQLiteLocalStoreProbe(connection_factory),
    )

    return SyncContainer(
        config=config,
        connection=connection,
        queue=queue,
        mirror=mirror,
        remote=remote,
        conflicts_service=conflicts_service,
        orchestrator=orchestrator,
        product_service=product_service,
        connectivity_monitor=connectivity_monitor,
        health_check_use_case=health_check_use_case,
    )
