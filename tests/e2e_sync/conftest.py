from __future__ import annotations

from pathlib import Path

import pytest_asyncio

from pdv_sync.bootstrap.container import SyncContainer, build_container
from pdv_sync.domain.models import SyncConfig
from pdv_sync.infrastructure.db import get_connection
from tests.e2e_sync.fakes import FakeCatalogRemote, FakeConnectivityProbe


@pytest_asyncio.fixture
async def make_engine(tmp_path: Path):
    containers: list[SyncContainer] = []

    def _factory(*, online: bool = False) -> tuple[SyncContainer, FakeCatalogRemote, FakeConnectivityProbe]:
        db_path = tmp_path / "e2e.db"
        remote = FakeCatalogRemote()
        probe = FakeConnectivityProbe(online=online)
        container = build_container(
            SyncConfig(api_base_url="http://catalogo.test", sync_interval_seconds=3600, db_path=str(db_path)),
            connection_factory=lambda: get_connection(db_path),
            remote=remote,
            connectivity_probe=probe,
        )
        containers.append(container)
        return container, remote, probe

    yield _factory
    for container in containers:
        await container.aclose()
