"""Tests for the physical file index."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from protoharvest.errors import NotFoundError, ReadError
from protoharvest.locator import PhysicalFileIndex, build_file_index, list_protos


def _touch(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_list_protos_recursive_and_sorted(tmp_path: Path) -> None:
    _touch(tmp_path / "b" / "z.proto")
    _touch(tmp_path / "a" / "deep" / "y.proto")
    _touch(tmp_path / "a" / "x.proto")
    _touch(tmp_path / "a" / "notes.txt")
    found = list_protos(tmp_path)
    assert found == sorted(found)
    assert [p.name for p in found] == ["y.proto", "x.proto", "z.proto"]


def test_list_protos_missing_dir_is_empty(tmp_path: Path) -> None:
    assert list_protos(tmp_path / "missing") == []


def test_list_protos_custom_suffix(tmp_path: Path) -> None:
    _touch(tmp_path / "a.thrift")
    _touch(tmp_path / "b.proto")
    assert [p.name for p in list_protos(tmp_path, ".thrift")] == ["a.thrift"]


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
def test_list_protos_unreadable_dir_raises(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    _touch(locked / "a.proto")
    locked.chmod(0o000)
    try:
        with pytest.raises(ReadError):
            list_protos(tmp_path)
    finally:
        locked.chmod(0o755)


def test_build_file_index_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(ReadError, match="does not exist"):
        build_file_index(tmp_path / "nope")


def test_find_by_logical_path_suffix(deps_dir: Path) -> None:
    index = build_file_index(deps_dir)
    physical = index.find("google/api/http.proto")
    assert physical == deps_dir / "googleapis" / "google" / "api" / "http.proto"
    assert "google/api/http.proto" in index


def test_find_respects_path_component_boundary(tmp_path: Path) -> None:
    _touch(tmp_path / "repo" / "foogle" / "api" / "http.proto")
    index = build_file_index(tmp_path)
    with pytest.raises(NotFoundError):
        index.find("gle/api/http.proto")
    assert index.find("foogle/api/http.proto").name == "http.proto"


def test_find_missing_raises_not_found(deps_dir: Path) -> None:
    index = build_file_index(deps_dir)
    with pytest.raises(NotFoundError) as exc_info:
        index.find("google/type/date.proto")
    assert exc_info.value.logical_path == "google/type/date.proto"
    assert "google/type/date.proto" not in index


def test_duplicate_logical_path_last_seen_wins(tmp_path: Path) -> None:
    first = _touch(tmp_path / "a-repo" / "google" / "api" / "http.proto")
    second = _touch(tmp_path / "b-repo" / "google" / "api" / "http.proto")
    index = PhysicalFileIndex(tmp_path, [first, second])
    assert index.find("google/api/http.proto") == second


def test_index_len_and_paths(deps_dir: Path) -> None:
    index = build_file_index(deps_dir)
    assert len(index) == 5
    assert all(p.suffix == ".proto" for p in index.paths)
