"""``patchforge ingest FILES...`` — feed build artifacts to the acceptor.

Each file is copied into the artifact store on a worker thread, the way
parallel downloads arrive in production.  The store pushes discovery and
checksum events to an ``Acceptor``; every bundle completed by the batch
is turned into a changeset and reported below.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from patchforge.config import ProdConfig
from patchforge.core.acceptor import Acceptor
from patchforge.core.artifact_store import ArtifactStore
from patchforge.core.config_guard import RequiredParameterMissingError
from patchforge.models.artifacts import StoredArtifact
from patchforge.models.changeset import ChangesetResult, StepStatus

console = Console()

_STATUS_STYLE = {
    StepStatus.SUCCEEDED: "green",
    StepStatus.FAILED: "red",
    StepStatus.TIMED_OUT: "red",
    StepStatus.SKIPPED: "dim",
}


def ingest_cmd(
    files: list[Path] = typer.Argument(..., help="Artifact files to ingest."),
    workers: int = typer.Option(
        4, "--workers", "-w", min=1, help="Number of concurrent ingest workers."
    ),
) -> None:
    """Store FILES and open a changeset for every bundle they complete."""
    missing = [f for f in files if not f.is_file()]
    if missing:
        for f in missing:
            console.print(f"[bold red]File not found:[/bold red] {f}")
        raise typer.Exit(code=1)

    config = ProdConfig()
    try:
        acceptor = Acceptor.from_config(config)
    except RequiredParameterMissingError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)

    store = ArtifactStore(config.artifacts_dir)
    store.register_listener(acceptor)

    stored: list[StoredArtifact] = []
    failures = 0
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="patchforge-ingest") as pool:
        futures = {pool.submit(store.ingest, f): f for f in files}
        for future in as_completed(futures):
            try:
                stored.append(future.result())
            except OSError as exc:
                failures += 1
                console.print(f"[red]Failed to ingest {futures[future]}:[/red] {exc}")

    _print_stored(stored)
    results = acceptor.history
    if not results:
        console.print("[dim]No bundle became ready.[/dim]")
    for result in results:
        _print_result(result)

    if failures or any(not r.fully_succeeded for r in results):
        raise typer.Exit(code=1)


def _print_stored(stored: list[StoredArtifact]) -> None:
    table = Table(title="Stored artifacts")
    table.add_column("File", style="cyan")
    table.add_column("md5", style="dim")
    table.add_column("Size", justify="right")
    for artifact in sorted(stored, key=lambda a: a.file_name):
        table.add_row(artifact.file_name, artifact.checksum, str(artifact.size_bytes))
    console.print(table)


def _print_result(result: ChangesetResult) -> None:
    colour = "green" if result.fully_succeeded else "yellow"
    table = Table(
        title=(
            f"[bold]{result.bundle.upper()}[/bold] build {result.build_date}: "
            f"[{colour}]{result.final_state.value}[/{colour}]"
        )
    )
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    for step in result.steps:
        style = _STATUS_STYLE.get(step.status, "")
        table.add_row(step.step, f"[{style}]{step.status.value}[/{style}]", step.detail)
    console.print(table)

    for target in result.failed_targets:
        console.print(f"  [yellow]incomplete:[/yellow] {target.file_path} {target.error}")
    console.print(f"[dim]{result.purged} tracker entries cleared[/dim]\n")
