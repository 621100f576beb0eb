from __future__ import annotations

import pytest

from pdv_sync.application.health_check import HealthCheckUseCase
from tests.e2e_sync.fakes import FakeConnectivityProbe


class _LocalStoreProbe:
    def __init__(self, checks: dict[str, tuple[bool, str, str]]) -> None:
        self._checks = checks

    def check(self) -> dict[str, tuple[bool, str, str]]:
        return self._checks


class _SlowProbe:
    async def check(self) -> tuple[bool, float | None, str]:
        return True, 2400.0, "Latencia aproximada API: 2400 ms."


@pytest.mark.asyncio
async def test_healthy_report_with_reachable_api() -> None:
    use_case = HealthCheckUseCase(
        FakeConnectivityProbe(online=True),
        _LocalStoreProbe({"migrations": (True, "Migraciones al día.", "open_db_help")}),
    )

    report = await use_case.run()

    statuses = {item.key: item.status for item in report.checks}
    assert statuses == {"api_reachable": "OK", "api_latency": "OK", "migrations": "OK"}
    assert report.checks[-1].category == "Integridad local"
    assert report.is_healthy


@pytest.mark.asyncio
async def test_unreachable_api_only_warns() -> None:
    use_case = HealthCheckUseCase(FakeConnectivityProbe(online=False), _LocalStoreProbe({}))

    report = await use_case.run()

    assert [item.status for item in report.checks] == ["WARN", "WARN"]
    assert report.is_healthy


@pytest.mark.asyncio
async def test_slow_api_warns_and_broken_store_fails() -> None:
    use_case = HealthCheckUseCase(
        _SlowProbe(),
        _LocalStoreProbe({"sync_queue": (False, "Cola de sincronización ilegible.", "open_db_help")}),
    )

    report = await use_case.run()

    statuses = {item.key: item.status for item in report.checks}
    assert statuses["api_latency"] == "WARN"
    assert statuses["sync_queue"] == "ERROR"
    assert not report.is_healthy
