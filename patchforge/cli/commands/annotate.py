"""``patchforge annotate FILE ANCHOR TEXT`` — one manual comment pass.

Recovery aid for descriptors whose comments were lost by an interrupted
run.  Each invocation inserts the text again; it is not idempotent.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from patchforge.core.patcher import DescriptorPatcher

console = Console()


def annotate_cmd(
    file: Path = typer.Argument(..., help="Descriptor file to edit in place."),
    anchor: str = typer.Argument(..., help="Substring identifying the anchor line(s)."),
    text: str = typer.Argument(..., help="Line inserted after every anchor line."),
) -> None:
    """Insert TEXT after every line of FILE containing ANCHOR."""
    if not file.is_file():
        console.print(f"[bold red]File not found:[/bold red] {file}")
        raise typer.Exit(code=1)

    inserted = DescriptorPatcher().reinsert_annotation(file, anchor, text)
    if not inserted:
        console.print(f"[yellow]Anchor not found in {file}; nothing inserted.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]Inserted {inserted} line(s) into {file}[/green]")
