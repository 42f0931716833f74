"""Tests for protoharvest list."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from protoharvest.cli.main import app

runner = CliRunner()


def test_list_shows_catalog(deps_dir: Path) -> None:
    result = runner.invoke(app, ["list", "--deps-dir", str(deps_dir)])
    assert result.exit_code == 0, result.output
    assert "3 APIs" in result.output
    assert "shelf" in result.output


def test_list_missing_catalog(tmp_path: Path) -> None:
    result = runner.invoke(app, ["list", "--deps-dir", str(tmp_path / "nowhere")])
    assert result.exit_code == 1
    assert "Cannot read the source tree" in result.output
