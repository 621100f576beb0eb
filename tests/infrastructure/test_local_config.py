from __future__ import annotations

import json
from pathlib import Path

from pdv_sync.bootstrap import settings
from pdv_sync.domain.models import SyncConfig
from pdv_sync.infrastructure.local_config import DEFAULT_API_BASE_URL, SyncConfigStore

_ENV_VARS = (
    "PDV_SYNC_API_URL",
    "PDV_SYNC_API_TOKEN",
    "PDV_SYNC_INTERVAL_SECONDS",
    "PDV_SYNC_DB_PATH",
)


def _clear_env(monkeypatch) -> None:
    monkeypatch.delenv("PDV_SYNC_DATA_DIR", raising=False)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_resolve_appdata_dir_usa_variable_de_entorno(monkeypatch, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "appdata"))

    assert settings.resolve_appdata_dir() == tmp_path / "appdata" / "PdvSync"


def test_resolve_appdata_dir_usa_home_si_no_hay_env(monkeypatch, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    monkeypatch.delenv("LOCALAPPDATA", raising=False)
    monkeypatch.setattr(settings.Path, "home", lambda: tmp_path)

    assert settings.resolve_appdata_dir() == tmp_path / ".local" / "share" / "PdvSync"


def test_load_sin_config_devuelve_defaults(monkeypatch, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    store = SyncConfigStore(base_dir=tmp_path)

    config = store.load()

    assert config.api_base_url == DEFAULT_API_BASE_URL
    assert config.sync_interval_seconds == 30.0
    assert config.request_timeout_seconds == 10.0
    assert config.connectivity_check_seconds == 15.0
    assert config.device_id


def test_load_con_json_invalido_usa_defaults(monkeypatch, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    store = SyncConfigStore(base_dir=tmp_path)
    (tmp_path / "config.json").write_text("{ invalido", encoding="utf-8")

    assert store.load().api_base_url == DEFAULT_API_BASE_URL


def test_load_autogenera_device_id_y_persiste(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    store = SyncConfigStore(base_dir=tmp_path)
    (tmp_path / "config.json").write_text(
        json.dumps({"api_base_url": "https://pdv.example.com", "device_id": ""}),
        encoding="utf-8",
    )
    monkeypatch.setattr(SyncConfigStore, "_generate_device_id", staticmethod(lambda: "device-fijo"))

    config = store.load()

    assert config.device_id == "device-fijo"
    assert config.api_base_url == "https://pdv.example.com"
    payload = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
    assert payload["device_id"] == "device-fijo"


def test_variables_de_entorno_tienen_prioridad(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    store = SyncConfigStore(base_dir=tmp_path)
    store.save(SyncConfig(api_base_url="https://file.example.com", device_id="dev-1"))
    monkeypatch.setenv("PDV_SYNC_API_URL", "https://env.example.com")
    monkeypatch.setenv("PDV_SYNC_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("PDV_SYNC_API_TOKEN", "secret-token")

    config = store.load()

    assert config.api_base_url == "https://env.example.com"
    assert config.sync_interval_seconds == 5.0
    assert config.api_token == "secret-token"
    assert config.device_id == "dev-1"


def test_intervalo_invalido_vuelve_al_default(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("PDV_SYNC_INTERVAL_SECONDS", "cada rato")

    config = SyncConfigStore(base_dir=tmp_path).load()

    assert config.sync_interval_seconds == 30.0


def test_save_genera_device_id_si_falta(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    store = SyncConfigStore(base_dir=tmp_path)

    saved = store.save(SyncConfig(api_base_url="https://pdv.example.com"))

    assert saved.device_id
    assert store.load().device_id == saved.device_id
