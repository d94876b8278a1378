"""``verifiedindex index`` — regenerate the program index.

Loads ``programs.yml`` and ``organizations.yml``, fetches every declared
build from the artifact repository and rewrites the index directory. Builds
that have not been published yet are skipped; any other failure aborts with
exit code 1.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from verifiedindex.cli.commands._common import err_console, resolve_settings
from verifiedindex.core.pipeline import generate_index

logger = logging.getLogger(__name__)

console = Console()


def index_cmd(
    programs: Path = typer.Option(
        None,
        "--programs",
        "-p",
        help="Path to programs.yml.",
    ),
    organizations: Path = typer.Option(
        None,
        "--organizations",
        "-o",
        help="Path to organizations.yml.",
    ),
    index_dir: Path = typer.Option(
        None,
        "--out",
        help="Index output directory (wiped and rewritten).",
    ),
) -> None:
    """Regenerate the verified program index."""
    run_settings = resolve_settings(
        programs_path=programs,
        organizations_path=organizations,
        index_dir=index_dir,
    )

    try:
        result = asyncio.run(generate_index(run_settings))
    except Exception as exc:
        logger.debug("Index generation failed", exc_info=True)
        err_console.print(f"[bold red]Index generation failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    summary = result.summary
    table = Table(title=f"Index written to {run_settings.index_dir}")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Programs", str(summary.program_count))
    table.add_row("Releases", str(len(result.releases)))
    table.add_row("Artifacts", str(summary.artifact_count))
    table.add_row("Organizations", str(summary.organization_count))
    table.add_row("Repositories", str(summary.repository_count))
    table.add_row("Skipped builds", str(len(result.skipped)))
    console.print(table)

    for skipped in result.skipped:
        console.print(f"[yellow]Not published yet:[/yellow] {skipped}")
