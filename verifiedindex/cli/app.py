"""Main Typer application — imports and registers all CLI commands.

Entry point: ``verifiedindex`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
import sys

import typer

from verifiedindex.cli.commands.index_cmd import index_cmd
from verifiedindex.cli.commands.workflows_cmd import workflows_cmd
from verifiedindex.config import settings

app = typer.Typer(
    name="verifiedindex",
    help="verifiedindex: index of verified program builds and their CI workflows.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (defaults to VERIFIEDINDEX_LOG_LEVEL)."
    ),
) -> None:
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# Register subcommands
app.command(name="index", help="Regenerate the verified program index.")(index_cmd)
app.command(name="workflows", help="Generate CI workflows for declared builds.")(workflows_cmd)


@app.command(name="show-config", help="Print the resolved settings.")
def show_config_cmd() -> None:
    """Print the settings resolved from the environment and .env file."""
    from rich.console import Console
    from rich.table import Table

    table = Table(title="verifiedindex settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    Console().print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
