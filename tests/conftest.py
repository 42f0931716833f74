"""Shared pytest fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from protoharvest.config import CompilerCfg, HarvestConfig, OutputCfg, SourceCfg

# logical path → proto source
PROTOS: dict[str, str] = {
    "google/api/http.proto": (
        'syntax = "proto3";\n'
        "package google.api;\n"
        "message Http {}\n"
    ),
    "google/api/annotations.proto": (
        'syntax = "proto3";\n'
        "package google.api;\n"
        'import "google/api/http.proto";\n'
        'import "google/protobuf/descriptor.proto";\n'
    ),
    "google/api/client.proto": (
        'syntax = "proto3";\n'
        "package google.api;\n"
        'import "google/protobuf/descriptor.proto";\n'
    ),
    "google/example/library/v1/library.proto": (
        'syntax = "proto3";\n'
        "package google.example.library.v1;\n"
        "// import \"google/commented/out.proto\";\n"
        'import "google/api/annotations.proto";\n'
        'import "google/api/client.proto";\n'
        'import "google/protobuf/empty.proto";\n'
        "service LibraryService {}\n"
    ),
    "google/example/shelf/v1/shelf.proto": (
        'syntax = "proto3";\n'
        "package google.example.shelf.v1;\n"
        'import "google/api/annotations.proto";\n'
        "message Shelf {}\n"
    ),
}

CATALOG: dict = {
    "apis": [
        {
            "id": "google.example.library.v1",
            "directory": "google/example/library/v1",
            "version": "v1",
            "majorVersion": "v1",
            "hostName": "library-example.googleapis.com",
            "title": "Example Library API",
            "description": "A simple Google Example Library API.",
            "importDirectories": ["google/api", "google/example/library/v1"],
            "configFile": "library_example_v1.yaml",
            "nameInServiceConfig": "library-example.googleapis.com",
        },
        {
            "id": "google.example.shelf.v1",
            "directory": "google/example/shelf/v1",
            "version": "v1",
            "majorVersion": "v1",
            "hostName": "shelf.googleapis.com",
            "title": "Google Shelf API",
            "description": "Shelves.",
            "importDirectories": ["google/api"],
            "configFile": "shelf_v1.yaml",
            "nameInServiceConfig": "shelf.googleapis.com",
        },
        {
            "id": "google.example.empty.v1",
            "directory": "google/example/empty/v1",
            "version": "v1",
            "majorVersion": "v1",
            "hostName": "empty.googleapis.com",
            "title": "Empty API",
            "description": "No protos at all.",
            "importDirectories": [],
            "configFile": "empty_v1.yaml",
            "nameInServiceConfig": "empty.googleapis.com",
        },
    ]
}


def write_protos(base: Path, protos: dict[str, str]) -> None:
    for logical, text in protos.items():
        path = base / logical
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


@pytest.fixture
def deps_dir(tmp_path: Path) -> Path:
    """A fetched source tree: deps/googleapis with protos, configs and catalog."""
    deps = tmp_path / "deps"
    root = deps / "googleapis"
    write_protos(root, PROTOS)
    (root / "google/example/library/v1/library_example_v1.yaml").write_text(
        "type: google.api.Service\nname: library-example.googleapis.com\n", encoding="utf-8"
    )
    (root / "google/example/shelf/v1/shelf_v1.yaml").write_text(
        "type: google.api.Service\nname: shelf.googleapis.com\n", encoding="utf-8"
    )
    empty = root / "google/example/empty/v1"
    empty.mkdir(parents=True)
    (empty / "empty_v1.yaml").write_text("type: google.api.Service\n", encoding="utf-8")
    (root / "api-index-v1.json").write_text(json.dumps(CATALOG, indent=2), encoding="utf-8")
    return deps


@pytest.fixture
def harvest_config(tmp_path: Path, deps_dir: Path) -> HarvestConfig:
    """Config pointing at the fixture tree, using the in-process compiler."""
    return HarvestConfig(
        source=SourceCfg(deps_dir=str(deps_dir)),
        output=OutputCfg(out=str(tmp_path / "apis" / "google.com")),
        compiler=CompilerCfg(backend="scan"),
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("PROTOHARVEST_OUT", "PROTOHARVEST_DEPS_DIR", "PROTOHARVEST_PROTOC"):
        monkeypatch.delenv(var, raising=False)
