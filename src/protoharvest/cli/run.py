"""protoharvest run — resolve and package every API in the catalog.

For each catalog entry:
  1. find the .proto files in its directory (skip the API if none)
  2. compile them with --include_imports and collect the closure
  3. copy the closure + service config to <out>/<api>/<version>/protos/
  4. write info.yaml records for the API, version and spec

A failing API is reported and the run continues; the exit code is 1 when
any API failed.

Usage:
  protoharvest run
  protoharvest run --no-fetch --api pubsub --api storage
  protoharvest run --backend scan --out build/apis
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from protoharvest.cli.errors import (
    err_api_failures,
    err_api_not_found,
    err_catalog_unreadable,
    err_config_invalid,
    err_fetch_failed,
)
from protoharvest.config import ConfigError, HarvestConfig, load_config
from protoharvest.errors import FetchError, ReadError
from protoharvest.pipeline import DONE, SKIPPED, ApiResult, RunReport, run_harvest

console = Console()


def load_cli_config(
    *,
    deps_dir: Path | None = None,
    out: Path | None = None,
    backend: str | None = None,
    timeout: float | None = None,
) -> HarvestConfig:
    """Load config and apply CLI flag overrides. Exits 1 on ConfigError."""
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            cfg = load_config()
    except ConfigError as exc:
        console.print(err_config_invalid(str(exc)))
        raise typer.Exit(1)
    for w in caught:
        console.print(f"[yellow]⚠[/] {escape(str(w.message))}")

    if deps_dir is not None:
        cfg.source.deps_dir = str(deps_dir)
    if out is not None:
        cfg.output.out = str(out)
    if backend is not None:
        if backend not in ("protoc", "scan"):
            console.print(err_config_invalid(f"--backend must be 'protoc' or 'scan', got '{backend}'"))
            raise typer.Exit(1)
        cfg.compiler.backend = backend
    if timeout is not None:
        cfg.compiler.timeout = timeout
    return cfg


def run_cmd(
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Output root. Overrides output.out in protoharvest.yaml."),
    ] = None,
    deps_dir: Annotated[
        Path | None,
        typer.Option("--deps-dir", help="Directory holding the cloned source repositories."),
    ] = None,
    no_fetch: Annotated[
        bool,
        typer.Option("--no-fetch", help="Do not clone missing source repositories."),
    ] = False,
    api: Annotated[
        list[str] | None,
        typer.Option("--api", help="Only process this API id (repeatable)."),
    ] = None,
    backend: Annotated[
        str | None,
        typer.Option("--backend", help="Compiler backend: 'protoc' (external) or 'scan' (in-process)."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Seconds before a compiler run is killed (0 = no limit)."),
    ] = None,
    date: Annotated[
        str | None,
        typer.Option("--date", hidden=True, help="Override the 'updated' label (for testing)."),
    ] = None,
) -> None:
    """Resolve every API's proto closure and write the registry tree."""
    cfg = load_cli_config(deps_dir=deps_dir, out=out, backend=backend, timeout=timeout)

    try:
        report = run_harvest(
            cfg,
            fetch=not no_fetch,
            only=api,
            updated=date,
            on_result=_print_result,
        )
    except FetchError as exc:
        console.print(err_fetch_failed(str(exc)))
        raise typer.Exit(1)
    except ReadError as exc:
        console.print(err_catalog_unreadable(str(exc)))
        raise typer.Exit(1)

    for api_id in report.unmatched:
        console.print(err_api_not_found(api_id))
    if report.results:
        _print_summary(report, Path(cfg.output.out))
    if report.failed:
        console.print(err_api_failures(len(report.failed)))
    if not report.ok:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _print_result(position: int, total: int, result: ApiResult) -> None:
    entry = result.entry
    label = f"[{position}/{total}] {entry.api_id} {entry.version_id}"
    if result.status == DONE:
        console.print(f"[green]✓[/] {escape(label)} ({len(result.files)} files)")
    elif result.status == SKIPPED:
        console.print(f"[yellow]⚠[/] {escape(label)} — skipped: {escape(result.error or '')}")
    else:
        console.print(f"[red]✗[/] {escape(label)} — {escape(result.error or '')}")


def _print_summary(report: RunReport, out: Path) -> None:
    table = Table(title="Harvest summary", show_header=True)
    table.add_column("Status")
    table.add_column("APIs", justify="right")
    table.add_row("[green]done[/]", str(len(report.done)))
    table.add_row("[yellow]skipped[/]", str(len(report.skipped)))
    table.add_row("[red]failed[/]", str(len(report.failed)))
    console.print()
    console.print(table)
    if report.revision:
        console.print(f"  Source revision: [bold]{report.revision}[/]")
    console.print(f"  Output: [bold]{escape(str(out))}[/]")
