"""
minidb CLI - Main Entry Point.

Provides the `minidb` command for inspecting and modifying a store directory.
"""

import logging
import shutil
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from minidb.core.config import StoreConfig, get_settings
from minidb.core.types import YEAR_MAX, Classification, Value
from minidb.persistence import (
    DirectoryState,
    Store,
    StoreError,
    probe_directory,
)

# Initialize CLI app
app = typer.Typer(
    name="minidb",
    help="minidb - embedded key-value store with a replay log and snapshots",
    no_args_is_help=True,
)

console = Console()


class OutputFormat(str, Enum):
    """Output formats for `show`."""
    TABLE = "table"
    JSON = "json"


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Path | None = typer.Option(
        None, "--dir", "-d", help="Store directory (default: MINIDB_DATA_DIR)"
    ),
):
    """Resolve the store directory and store configuration."""
    settings = get_settings()
    ctx.obj = {
        "data_dir": data_dir or settings.data_dir,
        "config": StoreConfig.from_settings(settings),
    }


def open_store(ctx: typer.Context) -> Store:
    """Load the store named on the command line, exiting 1 on failure."""
    try:
        return Store.load_or_create(ctx.obj["data_dir"], ctx.obj["config"])
    except StoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def render_store(store: Store, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Originator")
    table.add_column("Year", justify="right")
    table.add_column("Classification", style="dim")

    for key, value in store.items():
        table.add_row(key, value.originator, str(value.year), value.classification.value)

    return table


# =============================================================================
# Core Commands
# =============================================================================


@app.command()
def add(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to store under"),
    originator: str = typer.Option(..., "--originator", "-o", help="Originator name"),
    year: int = typer.Option(..., "--year", "-y", min=0, max=YEAR_MAX, help="Year of origin"),
    classification: Classification = typer.Option(
        ..., "--classification", "-c", case_sensitive=False, help="dynamic or static"
    ),
):
    """Add or replace an entry."""
    store = open_store(ctx)
    value = Value(originator=originator, year=year, classification=classification)

    try:
        store.add(key, value)
    except StoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Stored:[/green] {key}")


@app.command()
def get(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to look up"),
):
    """Look up a single entry."""
    store = open_store(ctx)
    value = store.get(key)

    if value is None:
        console.print(f"[yellow]Not found:[/yellow] {key}")
        raise typer.Exit(1)

    console.print_json(data={"key": key, **value.to_payload()})


@app.command()
def save(ctx: typer.Context):
    """Write a snapshot and reset the replay log."""
    store = open_store(ctx)

    try:
        store.save()
    except StoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Snapshot saved:[/green] {len(store)} entries")


@app.command()
def show(
    ctx: typer.Context,
    format_output: OutputFormat = typer.Option(
        OutputFormat.TABLE, "--format", "-f", case_sensitive=False, help="Output format: table, json"
    ),
):
    """List all entries."""
    store = open_store(ctx)

    if format_output is OutputFormat.JSON:
        console.print_json(data=[{"key": key, **value.to_payload()} for key, value in store.items()])
    else:
        console.print(render_store(store, f"minidb: {store.directory}"))
        console.print(f"\n[dim]{len(store)} entries[/dim]")


@app.command()
def status(ctx: typer.Context):
    """Show store directory state and recovery summary."""
    state = probe_directory(ctx.obj["data_dir"])
    store = open_store(ctx)

    table = Table(title="minidb Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Directory", str(store.directory))
    table.add_row("State", state.name)
    table.add_row("Entries", str(len(store)))
    for name, size in store.file_sizes().items():
        table.add_row(name, f"{size} bytes")
    table.add_row("Sync mode", store.config.sync_mode)

    console.print(table)
    console.print(f"[dim]{store.recovery}[/dim]")


@app.command()
def demo(
    ctx: typer.Context,
    reset: bool = typer.Option(False, "--reset", help="Delete the store directory first"),
):
    """Walk through log-only, snapshot-only and snapshot + replay recovery."""
    data_dir: Path = ctx.obj["data_dir"]

    if reset:
        shutil.rmtree(data_dir, ignore_errors=True)
    elif probe_directory(data_dir) is DirectoryState.EXISTING:
        console.print(f"[red]Error:[/red] {data_dir} already holds a store; pass --reset")
        raise typer.Exit(1)

    try:
        store = open_store(ctx)
        store.add("C", Value(
            originator="Dennis Ritchie", year=1972, classification=Classification.STATIC,
        ))
        store.add("Python", Value(
            originator="Guido van Rossum", year=1989, classification=Classification.DYNAMIC,
        ))
        console.print(render_store(store, "After initial insertions"))

        store = open_store(ctx)
        console.print(render_store(store, "Loaded from log only"))
        store.save()

        store = open_store(ctx)
        console.print(render_store(store, "Loaded from snapshot only"))
        store.add("Go", Value(
            originator="Rob Pike", year=2009, classification=Classification.STATIC,
        ))

        store = open_store(ctx)
        console.print(render_store(store, "Loaded from snapshot + replay"))
    except StoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    from minidb import __version__

    console.print(f"minidb v{__version__}")


def main():
    """Main entry point for the CLI."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(levelname)s: %(name)s: %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
