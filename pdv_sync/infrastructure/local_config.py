from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

from pdv_sync.bootstrap.settings import resolve_appdata_dir
from pdv_sync.domain.models import SyncConfig

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000"

_ENV_OVERRIDES: dict[str, str] = {
    "PDV_SYNC_API_URL": "api_base_url",
    "PDV_SYNC_API_TOKEN": "api_token",
    "PDV_SYNC_INTERVAL_SECONDS": "sync_interval_seconds",
    "PDV_SYNC_DB_PATH": "db_path",
}
_FLOAT_FIELDS = frozenset({"sync_interval_seconds", "request_timeout_seconds", "connectivity_check_seconds"})


class SyncConfigStore:
    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or resolve_appdata_dir()
        self._config_path = self._base_dir / "config.json"

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> SyncConfig:
        payload = self._read_payload()
        device_id = str(payload.get("device_id", "")).strip()
        if not device_id:
            device_id = self._generate_device_id()
            payload["device_id"] = device_id
            self._write_payload(payload)

        values: dict[str, Any] = {"api_base_url": DEFAULT_API_BASE_URL, "device_id": device_id}
        for field_name in SyncConfig.__dataclass_fields__:
            if field_name in payload and payload[field_name] not in (None, ""):
                values[field_name] = payload[field_name]
        for env_name, field_name in _ENV_OVERRIDES.items():
            raw_value = os.environ.get(env_name)
            if raw_value:
                values[field_name] = raw_value
        return SyncConfig(**{name: self._coerce(name, value) for name, value in values.items()})

    def save(self, config: SyncConfig) -> SyncConfig:
        if not config.device_id:
            config = replace(config, device_id=self._generate_device_id())
        self._write_payload(asdict(config))
        return config

    def _read_payload(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}
        try:
            payload = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.exception("No se pudo leer config.json: %s", exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write_payload(self, payload: dict[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    @staticmethod
    def _coerce(field_name: str, value: Any) -> Any:
        if field_name not in _FLOAT_FIELDS:
            return str(value)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Valor inválido para %s: %r; se usa el valor por defecto", field_name, value)
            return SyncConfig.__dataclass_fields__[field_name].default

    @staticmethod
    def _generate_device_id() -> str:
        return str(uuid.uuid4())
