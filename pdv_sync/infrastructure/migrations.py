from __future__ import annotations

import argparse
import hashlib
import importlib.util
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from pdv_sync.bootstrap.logging import configure_logging
from pdv_sync.bootstrap.settings import resolve_log_dir
from pdv_sync.domain.time_utils import utc_now_iso
from pdv_sync.infrastructure.db import default_db_path, get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
HISTORY_TABLE = "schema_migrations"

_HISTORY_DDL = f"""
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""

SchemaHook = Callable[[sqlite3.Connection], None]


@dataclass(frozen=True)
class SchemaStep:
    """Par ``NNN_nombre.up.sql`` / ``.down.sql`` con hooks Python opcionales."""

    version: int
    name: str
    stem: str
    directory: Path

    def script(self, direction: str) -> str:
        return (self.directory / f"{self.stem}.{direction}.sql").read_text(encoding="utf-8")

    def hook_path(self, direction: str) -> Path | None:
        path = self.directory / f"{self.stem}.{direction}.py"
        return path if path.exists() else None

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.script("up").encode("utf-8")).hexdigest()


def discover_steps(directory: Path) -> list[SchemaStep]:
    steps: list[SchemaStep] = []
    for up_file in sorted(directory.glob("*.up.sql")):
        stem = up_file.name.removesuffix(".up.sql")
        version_text, _, name = stem.partition("_")
        step = SchemaStep(version=int(version_text), name=name, stem=stem, directory=directory)
        if not (directory / f"{step.stem}.down.sql").exists():
            raise FileNotFoundError(f"Falta la migración de bajada para {up_file.name}")
        steps.append(step)
    return steps


def load_hook(path: Path) -> SchemaHook:
    module_spec = importlib.util.spec_from_file_location(f"pdv_sync_schema_hook_{path.stem.replace('.', '_')}", path)
    if module_spec is None or module_spec.loader is None:
        raise ImportError(f"No se pudo cargar el hook de migración {path}")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    hook = getattr(module, "run", None)
    if not callable(hook):
        raise AttributeError(f"El hook {path.name} debe definir run(connection)")
    return hook


class MigrationRunner:
    def __init__(self, connection: sqlite3.Connection, migrations_dir: Path | None = None) -> None:
        self.connection = connection
        self.steps = discover_steps(migrations_dir or MIGRATIONS_DIR)

    def apply_all(self) -> list[int]:
        history = self._history()
        applied: list[int] = []
        for step in self.steps:
            if step.version in history:
                if history[step.version] != step.checksum:
                    logger.warning("La migración %s cambió después de aplicarse", step.stem)
                continue
            self._apply(step)
            applied.append(step.version)
        return applied

    def rollback(self, steps: int = 1) -> list[int]:
        by_version = {step.version: step for step in self.steps}
        targets = sorted(self._history(), reverse=True)[:steps]
        for version in targets:
            self._revert(by_version[version])
        return targets

    def status(self) -> list[dict[str, object]]:
        history = self._history()
        return [
            {"version": step.version, "name": step.name, "applied": step.version in history}
            for step in self.steps
        ]

    def _history(self) -> dict[int, str]:
        with self.connection:
            self.connection.execute(_HISTORY_DDL)
        rows = self.connection.execute(f"SELECT version, checksum FROM {HISTORY_TABLE}").fetchall()
        return {int(row[0]): str(row[1]) for row in rows}

    def _apply(self, step: SchemaStep) -> None:
        script = step.script("up")
        if script.strip():
            self.connection.executescript(script)
        hook = step.hook_path("up")
        with self.connection:
            if hook is not None:
                load_hook(hook)(self.connection)
            self.connection.execute(
                f"INSERT INTO {HISTORY_TABLE} (version, name, checksum, applied_at) VALUES (?, ?, ?, ?)",
                (step.version, step.name, step.checksum, utc_now_iso()),
            )
            self.connection.execute(f"PRAGMA user_version = {step.version}")
        logger.info("Migración aplicada %s", step.stem)

    def _revert(self, step: SchemaStep) -> None:
        hook = step.hook_path("down")
        if hook is not None:
            with self.connection:
                load_hook(hook)(self.connection)
        script = step.script("down")
        if script.strip():
            self.connection.executescript(script)
        with self.connection:
            self.connection.execute(f"DELETE FROM {HISTORY_TABLE} WHERE version = ?", (step.version,))
            remaining = self.connection.execute(f"SELECT COALESCE(MAX(version), 0) FROM {HISTORY_TABLE}").fetchone()[0]
            self.connection.execute(f"PRAGMA user_version = {int(remaining)}")
        logger.info("Migración revertida %s", step.stem)


def run_migrations(connection: sqlite3.Connection) -> list[int]:
    return MigrationRunner(connection).apply_all()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Migraciones del almacén local de sincronización")
    parser.add_argument("command", choices=["up", "down", "status"])
    parser.add_argument("--db", default=str(default_db_path()), help="Ruta al archivo SQLite")
    parser.add_argument("--steps", type=int, default=1, help="Migraciones a revertir con 'down'")
    args = parser.parse_args(argv)
    configure_logging(resolve_log_dir(), console=True)

    connection = get_connection(Path(args.db))
    try:
        runner = MigrationRunner(connection)
        if args.command == "up":
            logger.info("Migraciones aplicadas", extra={"extra": {"versions": runner.apply_all()}})
        elif args.command == "down":
            logger.info("Migraciones revertidas", extra={"extra": {"versions": runner.rollback(args.steps)}})
        else:
            for item in runner.status():
                logger.info("%s %03d %s", "[x]" if item["applied"] else "[ ]", item["version"], item["name"])
    finally:
        connection.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
