"""Main Typer application — imports and registers all CLI commands.

Entry point: ``patchforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from patchforge.cli.commands.annotate import annotate_cmd
from patchforge.cli.commands.catalog_cmd import catalog_cmd
from patchforge.cli.commands.check_config import check_config_cmd
from patchforge.cli.commands.ingest import ingest_cmd
from patchforge.config import ProdConfig

app = typer.Typer(
    name="patchforge",
    help="patchforge: nightly build aggregator and release-patch orchestrator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _configure_logging(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log at DEBUG regardless of configuration."
    ),
) -> None:
    """Install a Rich log handler at the configured level."""
    level = "DEBUG" if verbose else ProdConfig().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="catalog", help="Show the bundle catalog.")(catalog_cmd)
app.command(name="check-config", help="Validate the GitHub bot configuration.")(check_config_cmd)
app.command(name="ingest", help="Store build artifacts and process ready bundles.")(ingest_cmd)
app.command(name="annotate", help="Re-insert a comment line after an anchor.")(annotate_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
