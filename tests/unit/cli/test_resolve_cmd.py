"""Tests for protoharvest resolve."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from protoharvest.cli.main import app

runner = CliRunner()


def _resolve(deps_dir: Path, api_id: str):
    return runner.invoke(app, ["resolve", api_id, "--deps-dir", str(deps_dir), "--backend", "scan"])


def test_resolve_prints_closure(deps_dir: Path, tmp_path: Path) -> None:
    result = _resolve(deps_dir, "shelf")
    assert result.exit_code == 0, result.output
    lines = [line.strip() for line in result.output.splitlines()]
    assert lines[1:] == [
        "google/api/annotations.proto",
        "google/api/http.proto",
        "google/example/shelf/v1/shelf.proto",
    ]
    # nothing is written
    assert not (tmp_path / "apis").exists()


def test_resolve_api_without_protos(deps_dir: Path) -> None:
    result = _resolve(deps_dir, "empty")
    assert result.exit_code == 0, result.output
    assert "no protos" in result.output


def test_resolve_unknown_api(deps_dir: Path) -> None:
    result = _resolve(deps_dir, "nope")
    assert result.exit_code == 1
    assert "not in the catalog" in result.output


def test_resolve_compile_error(deps_dir: Path) -> None:
    bad = deps_dir / "googleapis/google/example/shelf/v1/shelf.proto"
    bad.write_text('import "google/does/not/exist.proto";\n', encoding="utf-8")
    result = _resolve(deps_dir, "shelf")
    assert result.exit_code == 1
    assert "Compiling 'shelf' failed" in result.output
