"""CLI fixtures: isolate config lookup from the developer's machine."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("protoharvest.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    return tmp_path
