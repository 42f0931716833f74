"""Physical file index over the fetched source tree.

Logical import paths (``google/api/http.proto``) are independent of where a
file sits on disk (``deps/googleapis/google/api/http.proto``). The index maps
one to the other by path-suffix match. It is built once per run and only
read afterwards.
"""

from __future__ import annotations

import os
from collections import defaultdict
from pathlib import Path, PurePosixPath

from protoharvest.errors import NotFoundError, ReadError

PROTO_SUFFIX = ".proto"


def _raise_read_error(exc: OSError) -> None:
    raise ReadError(f"Cannot read directory '{exc.filename}': {exc.strerror}") from exc


def list_protos(directory: Path, suffix: str = PROTO_SUFFIX) -> list[Path]:
    """Return every file under *directory* ending in *suffix*, sorted.

    A missing directory yields an empty list.

    Raises:
        ReadError: If a directory below *directory* cannot be read.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory, onerror=_raise_read_error):
        dirnames.sort()
        for name in filenames:
            if name.endswith(suffix):
                found.append(Path(dirpath) / name)
    return sorted(found)


class PhysicalFileIndex:
    """Lookup from logical import path to physical file.

    When several physical files end with the same logical path the one seen
    last in sorted scan order wins.
    """

    def __init__(self, root: Path, paths: list[Path]) -> None:
        self.root = Path(root)
        self._paths = list(paths)
        self._by_name: dict[str, list[tuple[PurePosixPath, Path]]] = defaultdict(list)
        for p in self._paths:
            rel = PurePosixPath(p.relative_to(self.root).as_posix())
            self._by_name[rel.name].append((rel, p))

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, logical_path: object) -> bool:
        if not isinstance(logical_path, str):
            return False
        return self._match(logical_path) is not None

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def _match(self, logical_path: str) -> Path | None:
        logical = PurePosixPath(logical_path)
        depth = len(logical.parts)
        match: Path | None = None
        for rel, physical in self._by_name.get(logical.name, []):
            if rel.parts[-depth:] == logical.parts:
                match = physical
        return match

    def find(self, logical_path: str) -> Path:
        """Return the physical file for *logical_path*.

        Raises:
            NotFoundError: If no indexed file ends with *logical_path*.
        """
        match = self._match(logical_path)
        if match is None:
            raise NotFoundError(
                logical_path,
                f"No file under '{self.root}' matches import path '{logical_path}'",
            )
        return match


def build_file_index(root: Path, suffix: str = PROTO_SUFFIX) -> PhysicalFileIndex:
    """Scan *root* recursively and index every definition file.

    Raises:
        ReadError: If *root* does not exist or a directory cannot be read.
    """
    root = Path(root)
    if not root.is_dir():
        raise ReadError(f"Source root '{root}' does not exist")
    return PhysicalFileIndex(root, list_protos(root, suffix))
