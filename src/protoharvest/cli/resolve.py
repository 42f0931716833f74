"""protoharvest resolve — print the proto closure of one API.

Nothing is written; use it to check what ``protoharvest run`` would package.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from protoharvest.catalog import read_index
from protoharvest.cli.errors import (
    err_api_not_found,
    err_catalog_unreadable,
    err_compile_failed,
)
from protoharvest.cli.run import load_cli_config
from protoharvest.errors import CompileError, ReadError
from protoharvest.resolver import make_compiler, resolve_api

console = Console()


def resolve_cmd(
    api_id: Annotated[str, typer.Argument(help="API id from the catalog (see: protoharvest list).")],
    deps_dir: Annotated[
        Path | None,
        typer.Option("--deps-dir", help="Directory holding the cloned source repositories."),
    ] = None,
    backend: Annotated[
        str | None,
        typer.Option("--backend", help="Compiler backend: 'protoc' (external) or 'scan' (in-process)."),
    ] = None,
) -> None:
    """Print the sorted list of proto files an API depends on."""
    cfg = load_cli_config(deps_dir=deps_dir, backend=backend)
    try:
        catalog = read_index(cfg.source.root, cfg.source.index_file)
    except ReadError as exc:
        console.print(err_catalog_unreadable(str(exc)))
        raise typer.Exit(1)

    entries = catalog.select([api_id])
    if not entries:
        console.print(err_api_not_found(api_id))
        raise typer.Exit(1)

    cc = cfg.compiler
    compiler = make_compiler(cc.backend, cc.command, cc.timeout, cc.exclude_prefix)
    for entry in entries:
        try:
            files = resolve_api(
                entry,
                cfg.source.root,
                cfg.source.import_paths(),
                compiler,
                suffix=cc.suffix,
                exclude_prefix=cc.exclude_prefix,
            )
        except CompileError as exc:
            console.print(err_compile_failed(entry.api_id, str(exc)))
            raise typer.Exit(1)
        except ReadError as exc:
            console.print(err_catalog_unreadable(str(exc)))
            raise typer.Exit(1)

        console.print(f"[bold]{escape(entry.api_id)} {escape(entry.version_id)}[/] ({escape(entry.directory)})")
        if files is None:
            console.print("  [yellow]⚠[/] no protos — would be skipped")
            continue
        for name in files:
            console.print(f"  {escape(name)}", highlight=False)
