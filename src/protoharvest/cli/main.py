"""protoharvest CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from protoharvest.cli.catalog import list_cmd
from protoharvest.cli.resolve import resolve_cmd
from protoharvest.cli.run import run_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("protoharvest")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"protoharvest {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="protoharvest",
    help=(
        "protoharvest — package the proto closure of every published API.\n\n"
        "  protoharvest run      Resolve, copy and describe every API in the catalog.\n"
        "  protoharvest resolve  Print the closure of one API without writing anything."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """protoharvest — package the proto closure of every published API."""


app.command("run")(run_cmd)
app.command("list")(list_cmd)
app.command("resolve")(resolve_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed protoharvest version."""
    typer.echo(f"protoharvest {_installed_version()}")


if __name__ == "__main__":
    app()
