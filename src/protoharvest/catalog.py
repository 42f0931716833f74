"""API catalog loader.

The catalog (``api-index-v1.json``) lists every published API with the
directory holding its protos, its version and its service config. The file
is JSON; it is read with ``yaml.safe_load`` since JSON is a YAML subset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from protoharvest.errors import ReadError

DEFAULT_INDEX_FILE = "api-index-v1.json"

_SERVICE_SUFFIX = ".googleapis.com"


@dataclass(frozen=True)
class ApiCatalogEntry:
    """One API declared in the catalog."""

    id: str
    directory: str
    version: str = ""
    major_version: str = ""
    host_name: str = ""
    title: str = ""
    description: str = ""
    import_directories: tuple[str, ...] = ()
    config_file: str = ""
    name_in_service_config: str = ""

    @property
    def api_id(self) -> str:
        """Registry API id: the service name without its ``.googleapis.com`` suffix."""
        name = self.name_in_service_config or self.id
        if name.endswith(_SERVICE_SUFFIX):
            return name[: -len(_SERVICE_SUFFIX)]
        return name

    @property
    def version_id(self) -> str:
        return self.version

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ApiCatalogEntry:
        imports = raw.get("importDirectories") or []
        if not isinstance(imports, list):
            raise ReadError(f"importDirectories must be a list for API '{raw.get('id')}'")
        return cls(
            id=str(raw.get("id", "")),
            directory=str(raw.get("directory", "")),
            version=str(raw.get("version", "")),
            major_version=str(raw.get("majorVersion", "")),
            host_name=str(raw.get("hostName", "")),
            title=str(raw.get("title", "")),
            description=str(raw.get("description", "")),
            import_directories=tuple(str(d) for d in imports),
            config_file=str(raw.get("configFile", "")),
            name_in_service_config=str(raw.get("nameInServiceConfig", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the catalog (camelCase) form of this entry."""
        return {
            "id": self.id,
            "directory": self.directory,
            "version": self.version,
            "majorVersion": self.major_version,
            "hostName": self.host_name,
            "title": self.title,
            "description": self.description,
            "importDirectories": list(self.import_directories),
            "configFile": self.config_file,
            "nameInServiceConfig": self.name_in_service_config,
        }


@dataclass
class ApiCatalog:
    apis: list[ApiCatalogEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.apis)

    def __iter__(self):
        return iter(self.apis)

    def select(self, ids: list[str] | None) -> list[ApiCatalogEntry]:
        """Return entries whose ``id`` or ``api_id`` is in *ids* (all when empty)."""
        if not ids:
            return list(self.apis)
        wanted = set(ids)
        return [a for a in self.apis if a.id in wanted or a.api_id in wanted]


def read_index(root: Path, filename: str = DEFAULT_INDEX_FILE) -> ApiCatalog:
    """Read the catalog from *root*/*filename*.

    Raises:
        ReadError: If the file is missing, unreadable or malformed.
    """
    path = Path(root) / filename
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ReadError(f"Cannot read API catalog '{path}': {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ReadError(f"API catalog '{path}' is malformed: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("apis"), list):
        raise ReadError(f"API catalog '{path}' has no top-level 'apis' list")

    entries: list[ApiCatalogEntry] = []
    for i, raw in enumerate(data["apis"]):
        if not isinstance(raw, dict):
            raise ReadError(f"API catalog '{path}': entry {i} is not a mapping")
        entries.append(ApiCatalogEntry.from_dict(raw))
    return ApiCatalog(apis=entries)
