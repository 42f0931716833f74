"""Harvest pipeline — one catalog entry at a time.

  fetch sources → index every proto → read catalog → for each API:
      resolve closure → assemble artifact → write records

A ReadError on the catalog or source tree aborts the run. Compile and
write errors only fail the API they occur in; the run continues and the
outcome of every API is collected in a RunReport.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from protoharvest.assembler import assemble_artifact, staged_output
from protoharvest.catalog import ApiCatalogEntry, read_index
from protoharvest.config import HarvestConfig
from protoharvest.errors import CompileError, FetchError, WriteError
from protoharvest.fetch import commit_hash, fetch_dependencies
from protoharvest.locator import PROTO_SUFFIX, PhysicalFileIndex, build_file_index
from protoharvest.metadata import (
    SPEC_ID,
    RecordContext,
    commit_api_record,
    stage_api_record,
    write_version_records,
)
from protoharvest.resolver import (
    BUILTIN_PREFIX,
    Compiler,
    ResolvedFileSet,
    make_compiler,
    resolve_api,
)

DONE = "done"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class HarvestContext:
    """Read-only state shared by every API of a run."""

    root: Path
    out: Path
    index: PhysicalFileIndex
    import_paths: list[Path]
    compiler: Compiler
    records: RecordContext
    suffix: str = PROTO_SUFFIX
    exclude_prefix: str = BUILTIN_PREFIX


@dataclass
class ApiResult:
    entry: ApiCatalogEntry
    status: str
    files: ResolvedFileSet = ()
    output: Path | None = None
    error: str | None = None


@dataclass
class RunReport:
    results: list[ApiResult] = field(default_factory=list)
    revision: str = ""
    unmatched: list[str] = field(default_factory=list)

    def _with(self, status: str) -> list[ApiResult]:
        return [r for r in self.results if r.status == status]

    @property
    def done(self) -> list[ApiResult]:
        return self._with(DONE)

    @property
    def skipped(self) -> list[ApiResult]:
        return self._with(SKIPPED)

    @property
    def failed(self) -> list[ApiResult]:
        return self._with(FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.unmatched


def today() -> str:
    """Run date stamp used for the ``updated`` label."""
    return datetime.date.today().strftime("%Y-%m-%d")


def _is_path_segment(value: str) -> bool:
    return bool(value) and value not in (".", "..") and "/" not in value and "\\" not in value


def describe_api(entry: ApiCatalogEntry, ctx: HarvestContext) -> ApiResult:
    """Resolve, assemble and describe one API.

    Raises:
        ReadError: If the API directory cannot be read.
    """
    for label, value in (("API id", entry.api_id), ("version", entry.version_id)):
        if not _is_path_segment(value):
            return ApiResult(entry=entry, status=FAILED, error=f"Invalid {label} {value!r} for '{entry.id}'")

    container = ctx.root / entry.directory
    try:
        files = resolve_api(
            entry,
            ctx.root,
            ctx.import_paths,
            ctx.compiler,
            suffix=ctx.suffix,
            exclude_prefix=ctx.exclude_prefix,
        )
    except CompileError as exc:
        return ApiResult(entry=entry, status=FAILED, error=str(exc))

    if files is None:
        return ApiResult(entry=entry, status=SKIPPED, error=f"{entry.title or entry.id} has no protos")

    api_dir = ctx.out / entry.api_id
    version_dir = api_dir / entry.version_id
    staged_record: Path | None = None
    try:
        with staged_output(version_dir) as staging:
            assemble_artifact(entry, files, ctx.index, container, staging / SPEC_ID)
            write_version_records(staging, entry, ctx.records)
            staged_record = stage_api_record(api_dir, entry, ctx.records)
        commit_api_record(staged_record, api_dir)
    except WriteError as exc:
        if staged_record is not None:
            staged_record.unlink(missing_ok=True)
        return ApiResult(entry=entry, status=FAILED, files=files, error=str(exc))

    return ApiResult(entry=entry, status=DONE, files=files, output=version_dir / SPEC_ID)


def build_context(
    config: HarvestConfig,
    *,
    compiler: Compiler | None = None,
    updated: str | None = None,
) -> HarvestContext:
    """Index the fetched tree and collect the run-wide settings.

    Raises:
        ReadError: If the source tree cannot be read.
    """
    src, cc, out = config.source, config.compiler, config.output
    if compiler is None:
        compiler = make_compiler(cc.backend, cc.command, cc.timeout, cc.exclude_prefix)
    return HarvestContext(
        root=src.root,
        out=Path(out.out),
        index=build_file_index(Path(src.deps_dir), cc.suffix),
        import_paths=src.import_paths(),
        compiler=compiler,
        records=RecordContext(
            provider=out.provider,
            source=out.source,
            updated=updated or today(),
            display_prefix=out.display_prefix,
        ),
        suffix=cc.suffix,
        exclude_prefix=cc.exclude_prefix,
    )


def run_harvest(
    config: HarvestConfig,
    *,
    compiler: Compiler | None = None,
    fetch: bool = True,
    only: Sequence[str] | None = None,
    updated: str | None = None,
    on_result: Callable[[int, int, ApiResult], None] | None = None,
) -> RunReport:
    """Run the whole pipeline.

    Args:
        config: Merged configuration.
        compiler: Compiler override; built from ``config.compiler`` when None.
        fetch: Clone missing source repositories first.
        only: Restrict the run to these API ids. Ids matching no catalog
            entry are listed in ``RunReport.unmatched``.
        updated: Date stamp for every record; today when None.
        on_result: Called after each API with ``(position, total, result)``.

    Raises:
        FetchError: If a source repository cannot be cloned.
        ReadError: If the catalog or the source tree cannot be read.
    """
    if fetch:
        fetch_dependencies(Path(config.source.deps_dir), config.source.deps)

    ctx = build_context(config, compiler=compiler, updated=updated)
    catalog = read_index(ctx.root, config.source.index_file)

    report = RunReport()
    if (ctx.root / ".git").exists():
        try:
            report.revision = commit_hash(ctx.root)
        except FetchError:
            report.revision = ""

    entries = catalog.select(list(only) if only else None)
    if only:
        known = {e.id for e in entries} | {e.api_id for e in entries}
        report.unmatched = [i for i in only if i not in known]
    for i, entry in enumerate(entries, start=1):
        result = describe_api(entry, ctx)
        report.results.append(result)
        if on_result is not None:
            on_result(i, len(entries), result)
    return report
