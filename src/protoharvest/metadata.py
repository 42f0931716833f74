"""Registry metadata records (API, Version, Spec) and their YAML encoding.

Layout written per API/version:
  <out>/<apiID>/info.yaml                    — kind: API
  <out>/<apiID>/<versionID>/info.yaml        — kind: Version
  <out>/<apiID>/<versionID>/protos/info.yaml — kind: Spec

Identifiers are derived from the catalog entry and the run settings only.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from protoharvest.catalog import ApiCatalogEntry
from protoharvest.errors import WriteError

REGISTRY_V1 = "apigeeregistry/v1"
SPEC_ID = "protos"
SPEC_FILENAME = "protos.zip"
SPEC_MIME_TYPE = "application/x.protobuf+zip"
INFO_FILE = "info.yaml"


@dataclass
class Metadata:
    name: str
    parent: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.parent:
            out["parent"] = self.parent
        if self.labels:
            out["labels"] = dict(sorted(self.labels.items()))
        if self.annotations:
            out["annotations"] = dict(sorted(self.annotations.items()))
        return out


@dataclass
class Header:
    kind: str
    metadata: Metadata
    api_version: str = REGISTRY_V1

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class ApiData:
    display_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"displayName": self.display_name} if self.display_name else {}


@dataclass
class ApiVersionData:
    display_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"displayName": self.display_name} if self.display_name else {}


@dataclass
class ApiSpecData:
    filename: str = SPEC_FILENAME
    mime_type: str = SPEC_MIME_TYPE

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.filename:
            out["filename"] = self.filename
        if self.mime_type:
            out["mimeType"] = self.mime_type
        return out


@dataclass
class Record:
    """A header plus kind-specific data."""

    header: Header
    data: ApiData | ApiVersionData | ApiSpecData

    @property
    def kind(self) -> str:
        return self.header.kind

    @property
    def metadata(self) -> Metadata:
        return self.header.metadata

    def to_dict(self) -> dict[str, Any]:
        out = self.header.to_dict()
        out["data"] = self.data.to_dict()
        return out


@dataclass(frozen=True)
class RecordContext:
    """Run-wide values shared by every record.

    Attributes:
        provider: Provider domain, e.g. ``google.com``.
        source: Tool identifier written to the ``source`` label.
        updated: Run date (``YYYY-MM-DD``), computed once per run.
        display_prefix: Prefix added to API titles that lack it.
    """

    provider: str
    source: str
    updated: str
    display_prefix: str = "Google"

    def labels(self) -> dict[str, str]:
        return {
            "provider": self.provider.replace(".", "-"),
            "updated": self.updated,
            "source": self.source,
        }

    def api_name(self, api_id: str) -> str:
        return f"{self.provider}-{api_id}"


def display_name(title: str, prefix: str = "Google") -> str:
    """Return *title* with *prefix* prepended unless it already starts with it."""
    if not prefix or title.startswith(prefix):
        return title
    return f"{prefix} {title}"


def build_api_record(entry: ApiCatalogEntry, ctx: RecordContext) -> Record:
    return Record(
        header=Header(
            kind="API",
            metadata=Metadata(name=ctx.api_name(entry.api_id), labels=ctx.labels()),
        ),
        data=ApiData(display_name=display_name(entry.title, ctx.display_prefix)),
    )


def build_version_record(entry: ApiCatalogEntry, ctx: RecordContext) -> Record:
    return Record(
        header=Header(
            kind="Version",
            metadata=Metadata(
                parent=f"apis/{ctx.api_name(entry.api_id)}",
                name=entry.version_id,
                labels=ctx.labels(),
            ),
        ),
        data=ApiVersionData(display_name=entry.version_id),
    )


def build_spec_record(entry: ApiCatalogEntry, ctx: RecordContext) -> Record:
    return Record(
        header=Header(
            kind="Spec",
            metadata=Metadata(
                parent=f"apis/{ctx.api_name(entry.api_id)}/versions/{entry.version_id}",
                name=SPEC_ID,
                labels=ctx.labels(),
                annotations={
                    "config": entry.config_file,
                    "directory": entry.directory,
                    "host": entry.host_name,
                },
            ),
        ),
        data=ApiSpecData(),
    )


def encode_yaml(record: Record) -> str:
    """Serialize *record* in registry YAML form (field order preserved)."""
    try:
        return yaml.safe_dump(
            record.to_dict(),
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
    except yaml.YAMLError as exc:
        raise WriteError(f"Cannot encode {record.kind} record: {exc}") from exc


def _write(path: Path, record: Record) -> Path:
    text = encode_yaml(record)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Cannot write '{path}': {exc}") from exc
    return path


def write_spec_record(spec_dir: Path, entry: ApiCatalogEntry, ctx: RecordContext) -> Path:
    return _write(Path(spec_dir) / INFO_FILE, build_spec_record(entry, ctx))


def write_version_record(version_dir: Path, entry: ApiCatalogEntry, ctx: RecordContext) -> Path:
    return _write(Path(version_dir) / INFO_FILE, build_version_record(entry, ctx))


def write_version_records(version_dir: Path, entry: ApiCatalogEntry, ctx: RecordContext) -> list[Path]:
    """Write the Spec and Version records for *entry* below *version_dir*."""
    version_dir = Path(version_dir)
    return [
        write_spec_record(version_dir / SPEC_ID, entry, ctx),
        write_version_record(version_dir, entry, ctx),
    ]


def stage_api_record(api_dir: Path, entry: ApiCatalogEntry, ctx: RecordContext) -> Path:
    """Write the API record to a hidden file in *api_dir*.

    The API record is shared by every version of an API. ``commit_api_record``
    moves the staged file over ``<api_dir>/info.yaml``, so the last version
    committed wins.

    Raises:
        WriteError: If the record cannot be encoded or written.
    """
    text = encode_yaml(build_api_record(entry, ctx))
    api_dir = Path(api_dir)
    try:
        api_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=".info.", suffix=".yaml", dir=api_dir)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.chmod(name, 0o644)
    except OSError as exc:
        raise WriteError(f"Cannot write API record in '{api_dir}': {exc}") from exc
    return Path(name)


def commit_api_record(staged: Path, api_dir: Path) -> Path:
    """Move a record written by ``stage_api_record`` into place."""
    final = Path(api_dir) / INFO_FILE
    try:
        os.replace(staged, final)
    except OSError as exc:
        Path(staged).unlink(missing_ok=True)
        raise WriteError(f"Cannot write '{final}': {exc}") from exc
    return final
