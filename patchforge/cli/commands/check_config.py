"""``patchforge check-config`` — validate configuration before a run."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from patchforge.config import ProdConfig
from patchforge.core.config_guard import (
    RequiredParameterMissingError,
    enforce_bot_constraints,
)

console = Console()

_SECRET_FIELDS = {"github_token"}


def check_config_cmd() -> None:
    """Print the effective configuration and run the config guard."""
    config = ProdConfig()

    table = Table(title="patchforge configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in config.model_dump().items():
        if name in _SECRET_FIELDS and value:
            shown = "[dim]<set>[/dim]"
        else:
            shown = str(value) if value not in ("", None) else "[dim]-[/dim]"
        table.add_row(name, shown)
    console.print(table)

    try:
        enforce_bot_constraints(config)
    except RequiredParameterMissingError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    mode = "GitHub bot" if config.enable_github_bot else "dry-run"
    console.print(f"[bold green]Configuration OK[/bold green] ({mode})")
