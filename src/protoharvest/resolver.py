"""Dependency resolver — transitive import closure of an API's protos.

A schema compiler is asked to compile the API's protos with
``--include_imports``; the resulting FileDescriptorSet lists every file the
roots need. Names under the built-in namespace (``google/protobuf/``) are
dropped, the rest is deduplicated and sorted.

Compilers:
  ProtocCompiler    — external ``protoc`` (or ``python -m grpc_tools.protoc``),
                      shell=False, bounded by a timeout.
  ScanningCompiler  — follows ``import "...";`` statements in-process and
                      emits the same FileDescriptorSet shape.
"""

from __future__ import annotations

import re
import subprocess
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from protoharvest.catalog import ApiCatalogEntry
from protoharvest.errors import CompileError
from protoharvest.locator import PROTO_SUFFIX, list_protos

BUILTIN_PREFIX = "google/protobuf/"

_DESCRIPTOR_FILE = "proto.pb"

ResolvedFileSet = tuple[str, ...]


class Compiler(ABC):
    """Turns compilation roots + import bases into a FileDescriptorSet file."""

    @abstractmethod
    def compile(
        self,
        roots: Sequence[Path],
        import_paths: Sequence[Path],
        output: Path,
    ) -> None:
        """Write a serialized FileDescriptorSet for *roots* to *output*.

        The set must include every transitively imported file, not just
        the roots.

        Raises:
            CompileError: If compilation fails.
        """


class ProtocCompiler(Compiler):
    """Run an external protoc-compatible compiler.

    Default command is ``protoc``; ``("python", "-m", "grpc_tools.protoc")``
    works too. *timeout* is in seconds; ``None`` or 0 waits forever.
    """

    def __init__(
        self,
        command: Sequence[str] = ("protoc",),
        timeout: float | None = 300.0,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout or None

    def build_args(
        self,
        roots: Sequence[Path],
        import_paths: Sequence[Path],
        output: Path,
    ) -> list[str]:
        args = [*self.command, "-o", str(output), "--include_imports"]
        for base in import_paths:
            args += ["-I", str(base)]
        args += [str(r) for r in roots]
        return args

    def compile(
        self,
        roots: Sequence[Path],
        import_paths: Sequence[Path],
        output: Path,
    ) -> None:
        args = self.build_args(roots, import_paths, output)
        try:
            subprocess.run(
                args,
                shell=False,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise CompileError(
                f"Schema compiler '{self.command[0]}' not found on PATH"
            ) from None
        except subprocess.TimeoutExpired as exc:
            raise CompileError(
                f"Schema compiler timed out after {self.timeout:g}s",
                output=_text(exc.output),
            ) from None
        except subprocess.CalledProcessError as exc:
            raise CompileError(
                f"Failed to compile protos with {self.command[0]} "
                f"(exit status {exc.returncode})",
                output=_text(exc.output),
            ) from None


def _text(output: str | bytes | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output


# Strips // and /* */ comments but keeps string literals intact.
_COMMENT_RE = re.compile(
    r"""("(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')|//[^\n]*|/\*.*?\*/""", re.DOTALL
)
_IMPORT_RE = re.compile(
    r"""^\s*import\s+(?:public\s+|weak\s+)?(?:"([^"]+)"|'([^']+)')\s*;""", re.MULTILINE
)


def parse_imports(text: str) -> list[str]:
    """Return the import paths declared in proto source *text*, in order."""
    stripped = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    return [double or single for double, single in _IMPORT_RE.findall(stripped)]


class ScanningCompiler(Compiler):
    """In-process compiler that only resolves imports.

    Each file is located in the first import base that contains it, the
    same lookup rule protoc applies to ``-I`` directories. Imports under
    *builtin_prefix* that are not on disk are assumed to ship with the
    compiler and are recorded without being read.
    """

    def __init__(self, builtin_prefix: str = BUILTIN_PREFIX) -> None:
        self.builtin_prefix = builtin_prefix

    def compile(
        self,
        roots: Sequence[Path],
        import_paths: Sequence[Path],
        output: Path,
    ) -> None:
        bases = [Path(b).resolve() for b in import_paths]
        fds = descriptor_pb2.FileDescriptorSet()
        done: set[str] = set()
        for root in roots:
            name = self._logical_name(Path(root).resolve(), bases)
            self._add(name, bases, fds, done, chain=())
        Path(output).write_bytes(fds.SerializeToString())

    @staticmethod
    def _logical_name(path: Path, bases: list[Path]) -> str:
        for base in bases:
            try:
                return path.relative_to(base).as_posix()
            except ValueError:
                continue
        raise CompileError(
            f"{path}: File does not reside within any path specified using -I"
        )

    def _locate(self, name: str, bases: list[Path]) -> Path | None:
        for base in bases:
            candidate = base / name
            if candidate.is_file():
                return candidate
        return None

    def _add(
        self,
        name: str,
        bases: list[Path],
        fds: descriptor_pb2.FileDescriptorSet,
        done: set[str],
        chain: tuple[str, ...],
    ) -> None:
        if name in done:
            return
        if name in chain:
            cycle = " -> ".join((*chain[chain.index(name):], name))
            raise CompileError(f"File recursively imports itself: {cycle}")

        path = self._locate(name, bases)
        if path is None:
            if name.startswith(self.builtin_prefix):
                fds.file.add(name=name)
                done.add(name)
                return
            importer = chain[-1] if chain else name
            raise CompileError(f"{importer}: Import \"{name}\" was not found or had errors.")

        try:
            imports = parse_imports(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise CompileError(f"{name}: cannot read file: {exc}") from exc

        for dep in imports:
            self._add(dep, bases, fds, done, (*chain, name))

        # Dependencies precede dependents, as in protoc output.
        fds.file.add(name=name, dependency=imports)
        done.add(name)


def protos_from_descriptor_set(
    data: bytes,
    exclude_prefix: str = BUILTIN_PREFIX,
) -> ResolvedFileSet:
    """Return the sorted, unique file names in a serialized FileDescriptorSet.

    Names under *exclude_prefix* are dropped.

    Raises:
        CompileError: If *data* is not a FileDescriptorSet.
    """
    fds = descriptor_pb2.FileDescriptorSet()
    try:
        fds.ParseFromString(data)
    except DecodeError as exc:
        raise CompileError(f"Cannot parse compiled descriptor set: {exc}") from exc

    names = {f.name for f in fds.file if not f.name.startswith(exclude_prefix)}
    return tuple(sorted(names))


def referenced_protos(
    protos: Sequence[Path],
    import_paths: Sequence[Path],
    compiler: Compiler,
    exclude_prefix: str = BUILTIN_PREFIX,
) -> ResolvedFileSet:
    """Compile *protos* and return every file they reference.

    The descriptor set is written to a temporary directory that is removed
    on every exit path.
    """
    roots = [Path(p).resolve() for p in protos]
    bases = [Path(b).resolve() for b in import_paths]
    with tempfile.TemporaryDirectory(prefix="proto-import-") as tmpdir:
        output = Path(tmpdir) / _DESCRIPTOR_FILE
        compiler.compile(roots, bases, output)
        try:
            data = output.read_bytes()
        except OSError as exc:
            raise CompileError(f"Compiler produced no descriptor set: {exc}") from exc
    return protos_from_descriptor_set(data, exclude_prefix)


def resolve_api(
    entry: ApiCatalogEntry,
    root: Path,
    import_paths: Sequence[Path],
    compiler: Compiler,
    *,
    suffix: str = PROTO_SUFFIX,
    exclude_prefix: str = BUILTIN_PREFIX,
) -> ResolvedFileSet | None:
    """Resolve the closure of the protos under *root*/``entry.directory``.

    Returns ``None`` when the directory holds no protos; the API is then
    skipped.
    """
    protos = list_protos(Path(root) / entry.directory, suffix)
    if not protos:
        return None
    return referenced_protos(protos, import_paths, compiler, exclude_prefix)


def make_compiler(backend: str, command: Sequence[str], timeout: float, exclude_prefix: str) -> Compiler:
    """Build the compiler named by *backend* (``protoc`` or ``scan``)."""
    if backend == "scan":
        return ScanningCompiler(builtin_prefix=exclude_prefix)
    if backend == "protoc":
        return ProtocCompiler(command=command, timeout=timeout)
    raise ValueError(f"Unknown compiler backend '{backend}'")
