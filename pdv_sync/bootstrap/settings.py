from __future__ import annotations

import os
import tempfile
from pathlib import Path

APP_DIR_NAME = "PdvSync"
_PROBE_FILE = "_write_test.tmp"


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def resolve_appdata_dir() -> Path:
    """Directorio de datos del terminal: ``PDV_SYNC_DATA_DIR`` o el perfil local del usuario."""
    override = os.environ.get("PDV_SYNC_DATA_DIR")
    if override:
        return Path(override)
    base = os.environ.get("LOCALAPPDATA")
    return (Path(base) if base else Path.home() / ".local" / "share") / APP_DIR_NAME


def _is_writable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe = directory / _PROBE_FILE
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
    except OSError:
        return False
    return True


def log_dir_candidates() -> list[Path]:
    env_dir = os.environ.get("PDV_SYNC_LOG_DIR")
    candidates = [Path(env_dir)] if env_dir else []
    candidates.append(resolve_appdata_dir() / "logs")
    candidates.append(Path(tempfile.gettempdir()) / APP_DIR_NAME / "logs")
    return candidates


def resolve_log_dir() -> Path:
    writable = next((candidate for candidate in log_dir_candidates() if _is_writable(candidate)), None)
    if writable is not None:
        return writable
    fallback = project_root()
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback
