"""Artifact assembler — materialize a resolved closure into the output tree.

Files are written at their logical import path below the spec directory,
not at their physical source path. The service config is copied to
``<spec_dir>/<entry.directory>/<entry.config_file>``.

An API's output is staged in a temporary sibling directory and moved into
place only when every step succeeded, so a failed API leaves nothing behind.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from protoharvest.catalog import ApiCatalogEntry
from protoharvest.errors import NotFoundError, WriteError
from protoharvest.locator import PhysicalFileIndex


def copy_file(src: Path, dest: Path) -> None:
    """Copy *src* to *dest*, creating the destination directory.

    Raises:
        NotFoundError: If *src* does not exist.
        WriteError: If *dest* cannot be written.
    """
    src = Path(src)
    dest = Path(dest)
    try:
        data = src.read_bytes()
    except FileNotFoundError:
        raise NotFoundError(str(src), f"Source file '{src}' does not exist") from None
    except OSError as exc:
        raise WriteError(f"Cannot read '{src}': {exc}") from exc
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
    except OSError as exc:
        raise WriteError(f"Cannot write '{dest}': {exc}") from exc


def assemble_artifact(
    entry: ApiCatalogEntry,
    files: Sequence[str],
    index: PhysicalFileIndex,
    container: Path,
    spec_dir: Path,
) -> list[Path]:
    """Copy *files* and the service config of *entry* into *spec_dir*.

    Args:
        entry: Catalog entry being packaged.
        files: Resolved logical paths.
        index: Global physical file index.
        container: Physical directory of the API (holds the service config).
        spec_dir: Destination spec directory.

    Returns:
        Written paths, in the order of *files*, config file last.

    Raises:
        NotFoundError: If a logical path or the declared config file has no
            physical file.
        WriteError: If a copy fails.
    """
    spec_dir = Path(spec_dir)
    written: list[Path] = []

    # Resolve everything before writing so a missing file fails fast.
    sources = [(logical, index.find(logical)) for logical in files]

    for logical, physical in sources:
        dest = spec_dir / logical
        copy_file(physical, dest)
        written.append(dest)

    if entry.config_file:
        dest = spec_dir / entry.directory / entry.config_file
        copy_file(Path(container) / entry.config_file, dest)
        written.append(dest)

    return written


@contextmanager
def staged_output(final_dir: Path) -> Iterator[Path]:
    """Yield a staging directory that replaces *final_dir* on success.

    On error the staging directory is removed and *final_dir* is left as
    it was.

    Raises:
        WriteError: If the staging directory cannot be created or swapped in.
    """
    final_dir = Path(final_dir)
    try:
        final_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{final_dir.name}.", dir=final_dir.parent))
    except OSError as exc:
        raise WriteError(f"Cannot create staging directory for '{final_dir}': {exc}") from exc

    try:
        yield staging
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    try:
        staging.chmod(0o755)
        if final_dir.exists():
            shutil.rmtree(final_dir)
        os.replace(staging, final_dir)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise WriteError(f"Cannot move staged output into '{final_dir}': {exc}") from exc
