"""protoharvest rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from protoharvest.cli.errors import err_catalog_unreadable
    console.print(err_catalog_unreadable(str(exc)))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_config_invalid(detail: str) -> str:
    """protoharvest.yaml or the global config holds an invalid value."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(detail)}\n"
        "  Fix the value in protoharvest.yaml or ~/.protoharvest/config.yaml."
    )


def err_catalog_unreadable(detail: str) -> str:
    """The API catalog or the source tree could not be read."""
    return (
        f"[red]Error:[/] Cannot read the source tree: {escape(detail)}\n"
        "  Run:  protoharvest run  (without --no-fetch) to clone the sources,\n"
        "  or set source.deps_dir in protoharvest.yaml."
    )


def err_fetch_failed(detail: str) -> str:
    """git clone of a source repository failed."""
    return (
        f"[red]Error:[/] Fetching sources failed: {escape(detail)}\n"
        "  Check network access and the URLs in source.deps, then re-run.\n"
        "  Already-cloned repositories are kept and not fetched again."
    )


def err_api_not_found(api_id: str) -> str:
    """Requested API id is not in the catalog."""
    return (
        f"[red]Error:[/] API '{escape(api_id)}' is not in the catalog.\n"
        "  Run:  protoharvest list  to see every catalog entry."
    )


def err_compile_failed(api_id: str, detail: str) -> str:
    """The schema compiler failed for one API."""
    return (
        f"[red]Error:[/] Compiling '{escape(api_id)}' failed:\n{escape(detail)}\n"
        "  Install protoc, or use:  --backend scan  to resolve imports in-process."
    )


def err_api_failures(count: int) -> str:
    """Some APIs failed — summary line shown at the end of a run."""
    plural = "API" if count == 1 else "APIs"
    return (
        f"[red]✗[/] {count} {plural} failed. See the errors above.\n"
        "  Re-run a single API with:  protoharvest run --api <id>"
    )
