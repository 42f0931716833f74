"""Tests for registry metadata records."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from protoharvest.catalog import ApiCatalogEntry
from protoharvest.errors import WriteError
from protoharvest.metadata import (
    REGISTRY_V1,
    RecordContext,
    build_api_record,
    build_spec_record,
    build_version_record,
    commit_api_record,
    display_name,
    encode_yaml,
    stage_api_record,
    write_version_records,
)

_FOO = ApiCatalogEntry(
    id="google.foo.v1",
    directory="google/foo/v1",
    version="v1",
    host_name="foo.googleapis.com",
    title="Foo API",
    config_file="foo_v1.yaml",
    name_in_service_config="foo.googleapis.com",
)

_CTX = RecordContext(provider="google.com", source="import-google-apis", updated="2026-10-19")


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


def test_api_record_identifiers() -> None:
    record = build_api_record(_FOO, _CTX)
    assert record.kind == "API"
    assert record.metadata.name == "google.com-foo"
    assert record.metadata.parent == ""


def test_version_record_identifiers() -> None:
    record = build_version_record(_FOO, _CTX)
    assert record.kind == "Version"
    assert record.metadata.parent == "apis/google.com-foo"
    assert record.metadata.name == "v1"
    assert record.data.display_name == "v1"


def test_spec_record_identifiers() -> None:
    record = build_spec_record(_FOO, _CTX)
    assert record.kind == "Spec"
    assert record.metadata.parent == "apis/google.com-foo/versions/v1"
    assert record.metadata.name == "protos"
    assert record.data.filename == "protos.zip"
    assert record.data.mime_type == "application/x.protobuf+zip"


def test_spec_annotations() -> None:
    record = build_spec_record(_FOO, _CTX)
    assert record.metadata.annotations == {
        "config": "foo_v1.yaml",
        "directory": "google/foo/v1",
        "host": "foo.googleapis.com",
    }


@pytest.mark.parametrize("builder", [build_api_record, build_version_record, build_spec_record])
def test_labels_shared_by_every_record(builder) -> None:
    assert builder(_FOO, _CTX).metadata.labels == {
        "provider": "google-com",
        "updated": "2026-10-19",
        "source": "import-google-apis",
    }


# ---------------------------------------------------------------------------
# Display name
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Foo API", "Google Foo API"),
        ("Google Cloud Pub/Sub API", "Google Cloud Pub/Sub API"),
        ("Googleplex API", "Googleplex API"),
    ],
)
def test_display_name(title: str, expected: str) -> None:
    assert display_name(title) == expected


def test_display_name_custom_prefix() -> None:
    assert display_name("Foo API", prefix="Acme") == "Acme Foo API"
    assert display_name("Foo API", prefix="") == "Foo API"


def test_api_record_uses_display_name() -> None:
    assert build_api_record(_FOO, _CTX).data.display_name == "Google Foo API"


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def test_encode_spec_yaml_layout() -> None:
    text = encode_yaml(build_spec_record(_FOO, _CTX))
    assert text.startswith(f"apiVersion: {REGISTRY_V1}\nkind: Spec\nmetadata:\n  name: protos\n")
    doc = yaml.safe_load(text)
    assert doc["data"] == {"filename": "protos.zip", "mimeType": "application/x.protobuf+zip"}
    assert list(doc["metadata"]) == ["name", "parent", "labels", "annotations"]


def test_encode_api_yaml_omits_empty_fields() -> None:
    doc = yaml.safe_load(encode_yaml(build_api_record(_FOO, _CTX)))
    assert "parent" not in doc["metadata"]
    assert "annotations" not in doc["metadata"]
    assert doc["data"] == {"displayName": "Google Foo API"}


def test_encoding_is_deterministic() -> None:
    assert encode_yaml(build_spec_record(_FOO, _CTX)) == encode_yaml(build_spec_record(_FOO, _CTX))


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def test_write_version_records_layout(tmp_path: Path) -> None:
    written = write_version_records(tmp_path / "v1", _FOO, _CTX)
    assert written == [
        tmp_path / "v1" / "protos" / "info.yaml",
        tmp_path / "v1" / "info.yaml",
    ]
    kinds = [yaml.safe_load(p.read_text(encoding="utf-8"))["kind"] for p in written]
    assert kinds == ["Spec", "Version"]


def test_staged_api_record_hidden_until_committed(tmp_path: Path) -> None:
    api_dir = tmp_path / "foo"
    staged = stage_api_record(api_dir, _FOO, _CTX)
    assert staged.parent == api_dir
    assert staged.name.startswith(".")
    assert not (api_dir / "info.yaml").exists()

    final = commit_api_record(staged, api_dir)
    assert final == api_dir / "info.yaml"
    assert not staged.exists()
    assert yaml.safe_load(final.read_text(encoding="utf-8"))["kind"] == "API"


def test_commit_api_record_replaces_previous(tmp_path: Path) -> None:
    v2 = ApiCatalogEntry(
        id="google.foo.v2",
        directory="google/foo/v2",
        version="v2",
        title="Foo API v2",
        name_in_service_config="foo.googleapis.com",
    )
    api_dir = tmp_path / "foo"
    commit_api_record(stage_api_record(api_dir, _FOO, _CTX), api_dir)
    commit_api_record(stage_api_record(api_dir, v2, _CTX), api_dir)
    doc = yaml.safe_load((api_dir / "info.yaml").read_text(encoding="utf-8"))
    assert doc["data"]["displayName"] == "Google Foo API v2"
    assert sorted(p.name for p in api_dir.iterdir()) == ["info.yaml"]


def test_write_failure_raises_write_error(tmp_path: Path) -> None:
    (tmp_path / "v1").write_text("not a directory", encoding="utf-8")
    with pytest.raises(WriteError):
        write_version_records(tmp_path / "v1", _FOO, _CTX)


def test_stage_failure_raises_write_error(tmp_path: Path) -> None:
    (tmp_path / "foo").write_text("not a directory", encoding="utf-8")
    with pytest.raises(WriteError):
        stage_api_record(tmp_path / "foo", _FOO, _CTX)
