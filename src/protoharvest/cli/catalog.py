"""protoharvest list — show the APIs declared in the catalog."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from protoharvest.catalog import read_index
from protoharvest.cli.errors import err_catalog_unreadable
from protoharvest.cli.run import load_cli_config
from protoharvest.errors import ReadError

console = Console()


def list_cmd(
    deps_dir: Annotated[
        Path | None,
        typer.Option("--deps-dir", help="Directory holding the cloned source repositories."),
    ] = None,
) -> None:
    """List every API in the catalog with its directory and version."""
    cfg = load_cli_config(deps_dir=deps_dir)
    try:
        catalog = read_index(cfg.source.root, cfg.source.index_file)
    except ReadError as exc:
        console.print(err_catalog_unreadable(str(exc)))
        raise typer.Exit(1)

    table = Table(title=f"{len(catalog)} APIs", show_header=True)
    table.add_column("API")
    table.add_column("Version")
    table.add_column("Directory")
    table.add_column("Title")
    for entry in catalog:
        table.add_row(entry.api_id, entry.version_id, entry.directory, entry.title)
    console.print(table)
