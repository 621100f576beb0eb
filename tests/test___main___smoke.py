from __future__ import annotations

import runpy

import pytest


def test_package_main_module_delegates_to_entrypoint(monkeypatch) -> None:
    monkeypatch.setattr("pdv_sync.entrypoints.main.main", lambda: 0)

    with pytest.raises(SystemExit) as exit_info:
        runpy.run_module("pdv_sync.__main__", run_name="__main__")

    assert exit_info.value.code == 0
