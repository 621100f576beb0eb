from __future__ import annotations

import argparse
import asyncio
import faulthandler
import logging
import sys
from pathlib import Path

from pdv_sync.bootstrap.container import SyncContainer, build_container
from pdv_sync.bootstrap.logging import configure_logging, install_exception_hook
from pdv_sync.bootstrap.settings import resolve_log_dir
from pdv_sync.core.metrics import metrics_registry

logger = logging.getLogger(__name__)


async def _run_selfcheck(container: SyncContainer) -> int:
    report = await container.health_check_use_case.run()
    for check in report.checks:
        level = logging.INFO if check.status == "OK" else logging.WARNING
        logger.log(level, "[%s] %s/%s: %s", check.status, check.category, check.key, check.message)
    if not report.is_healthy:
        logger.error("Selfcheck falló; revisa los elementos marcados como ERROR.")
        return 1
    logger.info("Selfcheck OK.")
    return 0


async def _run_once(container: SyncContainer) -> int:
    online = await container.connectivity_monitor.check_now()
    if not online:
        logger.warning("API no alcanzable; la cola se mantiene para el próximo intento.")
        return 2
    # El paso a online ya programó un ciclo en segundo plano.
    await container.orchestrator.aclose()
    report = container.orchestrator.last_report
    completed = report.completed if report is not None else await container.orchestrator.try_sync()
    logger.info("Ciclo único finalizado completed=%s metrics=%s", completed, metrics_registry.snapshot())
    return 0 if completed else 1


async def _run_forever(container: SyncContainer) -> int:
    container.connectivity_monitor.start()
    container.orchestrator.start()
    logger.info(
        "Motor de sincronización iniciado api=%s intervalo=%ss",
        container.config.api_base_url,
        container.config.sync_interval_seconds,
    )
    await asyncio.Event().wait()
    return 0


async def _main_async(args: argparse.Namespace) -> int:
    container = build_container()
    try:
        if args.selfcheck:
            return await _run_selfcheck(container)
        if args.once:
            return await _run_once(container)
        return await _run_forever(container)
    finally:
        await container.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Motor de sincronización offline del catálogo PDV")
    parser.add_argument("--selfcheck", action="store_true", help="Valida almacén local y conectividad y termina")
    parser.add_argument("--once", action="store_true", help="Ejecuta un único ciclo de sincronización y termina")
    args = parser.parse_args(argv)

    log_dir = resolve_log_dir()
    configure_logging(log_dir, console=True)
    install_exception_hook()
    faulthandler.enable()

    logger.info("Log dir: %s", log_dir)
    logger.info("Python: %s", sys.version)
    logger.info("CWD: %s", Path.cwd())

    try:
        return asyncio.run(_main_async(args))
    except KeyboardInterrupt:
        logger.info("Motor de sincronización detenido por el usuario")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
