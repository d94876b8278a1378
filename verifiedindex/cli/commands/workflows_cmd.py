"""``verifiedindex workflows`` — generate one CI workflow per declared build."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console

from verifiedindex.cli.commands._common import err_console, resolve_settings
from verifiedindex.workflows.generator import generate_workflows

logger = logging.getLogger(__name__)

console = Console()


def workflows_cmd(
    programs: Path = typer.Option(
        None,
        "--programs",
        "-p",
        help="Path to programs.yml.",
    ),
    out_dir: Path = typer.Option(
        None,
        "--out",
        help="Directory the workflow files are written to.",
    ),
    no_fetch_manifests: bool = typer.Option(
        False,
        "--no-fetch-manifests",
        help="Skip reading Anchor.toml; use the newest known toolchain.",
    ),
) -> None:
    """Generate verification workflows for every declared build."""
    run_settings = resolve_settings(
        programs_path=programs,
        workflows_dir=out_dir,
        fetch_manifests=False if no_fetch_manifests else None,
    )

    try:
        written = asyncio.run(generate_workflows(run_settings))
    except Exception as exc:
        logger.debug("Workflow generation failed", exc_info=True)
        err_console.print(f"[bold red]Workflow generation failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]Wrote {len(written)} workflow(s)[/bold green] to {run_settings.workflows_dir}"
    )
