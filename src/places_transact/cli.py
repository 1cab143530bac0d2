"""places-transact CLI - migrate Firefox history into a datom store."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from places_transact.config import DEFAULT_BUFFER_SIZE, DEFAULT_OUTPUT_PATH, MigrationConfig
from places_transact.exceptions import BackendCommitError, PlacesTransactError
from places_transact.pipeline import migrate

app = typer.Typer(
    name="places-transact",
    help="Migrate places.sqlite history into an append-only datom store.",
    add_completion=False,
)
console = Console(stderr=True)


def configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def main(
    source: Path = typer.Argument(..., help="Path to places.sqlite"),
    output: Path = typer.Argument(DEFAULT_OUTPUT_PATH, help="Store file to create"),
    force: bool = typer.Option(False, "--force", "-f", help="Replace OUTPUT if it already exists"),
    buffer_size: int = typer.Option(
        DEFAULT_BUFFER_SIZE, "--buffer-size", "-b", min=0, help="Commit once the batch reaches this many bytes"
    ),
    realistic: bool = typer.Option(
        False, "--realistic", help="Commit every place and every visit as its own transaction"
    ),
    schema: Path | None = typer.Option(None, "--schema", help="EDN schema file (defaults to the bundled one)"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for info, -vv for debug"),
) -> None:
    """
    Migrate places and visits from SOURCE into a new store at OUTPUT.

    Examples:
        places-transact ~/profile/places.sqlite
        places-transact places.sqlite out.db --force --realistic
    """
    configure_logging(verbose)
    config = MigrationConfig(
        source_path=source,
        output_path=output,
        buffer_size=0 if realistic else buffer_size,
        overwrite=force,
        schema_path=schema,
    )

    try:
        with Progress(
            TextColumn("[blue]Processing places"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("places", total=None)

            def on_progress(done: int, total: int | None) -> None:
                progress.update(task, completed=done, total=total)

            summary = migrate(config, on_progress=on_progress)
    except BackendCommitError as e:
        console.print(f"[red]❌ Commit failed:[/red] {e}")
        console.print(f"[dim]{len(e.statements)} bytes of pending statements were logged[/dim]")
        raise typer.Exit(code=1) from e
    except PlacesTransactError as e:
        console.print(f"[red]❌ Migration failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]✅ Migrated {summary.places} places ({summary.visits} visits) "
        f"in {summary.commits} transactions[/green]"
    )
