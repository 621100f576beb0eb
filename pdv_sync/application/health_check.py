from __future__ import annotations

from datetime import datetime

from pdv_sync.domain.models import HealthCheckItem, HealthReport
from pdv_sync.domain.ports import ConnectivityProbePort, LocalStoreProbePort

_LATENCY_WARN_MS = 1500
_CONNECTIVITY = "Conectividad"


class HealthCheckUseCase:
    def __init__(self, connectivity_probe: ConnectivityProbePort, local_store_probe: LocalStoreProbePort) -> None:
        self._connectivity_probe = connectivity_probe
        self._local_store_probe = local_store_probe

    async def run(self) -> HealthReport:
        checks: list[HealthCheckItem] = []

        reachable, latency_ms, latency_message = await self._connectivity_probe.check()
        checks.append(
            HealthCheckItem(
                key="api_reachable",
                status="OK" if reachable else "WARN",
                message="API de catálogo alcanzable." if reachable else "API de catálogo no alcanzable; se trabajará en modo offline.",
                action_id="open_sync_settings",
                category=_CONNECTIVITY,
            )
        )
        checks.append(
            HealthCheckItem(
                key="api_latency",
                status="OK" if latency_ms is not None and latency_ms < _LATENCY_WARN_MS else "WARN",
                message=latency_message,
                action_id="open_sync_settings",
                category=_CONNECTIVITY,
            )
        )

        local_checks = self._local_store_probe.check()
        checks.extend(self._build_checks("Integridad local", local_checks))
        return HealthReport(generated_at=datetime.now().isoformat(), checks=tuple(checks))

    @staticmethod
    def _build_checks(category: str, checks: dict[str, tuple[bool, str, str]]) -> list[HealthCheckItem]:
        return [
            HealthCheckItem(
                key=key,
                status="OK" if ok else "ERROR",
                message=message,
                action_id=action_id,
                category=category,
            )
            for key, (ok, message, action_id) in checks.items()
        ]
