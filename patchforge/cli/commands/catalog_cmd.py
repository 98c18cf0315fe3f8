"""``patchforge catalog`` — show bundles, their targets and slot updates.

With ``--build-date`` the artifact templates are rendered to the file
names the acceptor will wait for.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from patchforge.catalog import BundleCatalog, CatalogError, default_catalog
from patchforge.config import ProdConfig
from patchforge.models.artifacts import format_build_date, parse_build_date
from patchforge.models.catalog import render_template

console = Console()


def catalog_cmd(
    build_date: str = typer.Option(
        None,
        "--build-date",
        "-d",
        help="Render file names for this build date (YYYYMMDD).",
    ),
    version: str = typer.Option(
        None,
        "--version",
        help="Product version; defaults to PATCHFORGE_PRODUCT_VERSION.",
    ),
    catalog_file: Path = typer.Option(
        None,
        "--catalog",
        "-c",
        help="YAML catalog file; defaults to the built-in product lines.",
    ),
) -> None:
    """List every bundle with its required artifacts and descriptor slots."""
    config = ProdConfig()
    path = catalog_file or config.catalog_path
    try:
        catalog = BundleCatalog.load(path) if path else default_catalog()
    except (OSError, CatalogError, ValueError) as exc:
        console.print(f"[bold red]Cannot load catalog:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if build_date:
        try:
            build_date = format_build_date(parse_build_date(build_date))
        except ValueError:
            console.print(f"[bold red]Invalid build date:[/bold red] {build_date}")
            raise typer.Exit(code=1)

    version = version if version is not None else config.product_version

    for bundle in catalog:
        context = bundle.context(version or "{version}", build_date or "{build_date}")

        summary = Table(title=f"{bundle.name.upper()} ({bundle.repository})")
        summary.add_column("#", justify="right", style="dim")
        summary.add_column("Required artifact", style="cyan")
        for index, template in enumerate(bundle.required_artifacts, start=1):
            summary.add_row(str(index), render_template(template, context))
        console.print(summary)

        slots = Table(show_header=True, header_style="bold")
        slots.add_column("Descriptor", style="green")
        slots.add_column("Kind")
        slots.add_column("Slot", style="cyan")
        slots.add_column("Field")
        slots.add_column("Value from")
        slots.add_column("File name")
        for target in bundle.targets:
            for update in target.slot_updates:
                slots.add_row(
                    target.file_path,
                    update.kind.value,
                    update.slot_name,
                    update.target_field,
                    update.source.value,
                    render_template(update.file_template, context),
                )
        console.print(slots)
        console.print(
            f"[dim]prefix {bundle.prefix!r}, ready at {bundle.required_count} "
            f"checksummed artifact(s)[/dim]\n"
        )
