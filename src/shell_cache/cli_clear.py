"""Clear commands for the shell_cache CLI."""

import shutil
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from .controller import CacheStorage

console = Console(force_terminal=True)
clear_app = typer.Typer(help="Delete cache stores")

DEFAULT_STORAGE_DIR = Path(".cache/shell")


def _confirm_or_exit(force: bool) -> None:
    if not force:
        confirm = typer.confirm("Are you sure you want to delete this data?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)


def _count_files(path: Path) -> int:
    return sum(1 for p in path.rglob("*") if p.is_file())


@clear_app.command(name="all")
def clear_all(
    storage_dir: Annotated[
        Path,
        typer.Option("--storage-dir", "-s", help="Storage directory to clear"),
    ] = DEFAULT_STORAGE_DIR,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete every cache store and the registration record."""
    console.print("[bold]Clearing all caches[/bold]")
    console.print(f"  Storage dir: {storage_dir}")
    console.print()

    if not storage_dir.exists():
        console.print(f"[yellow]Storage:[/yellow] {storage_dir} does not exist")
        return

    _confirm_or_exit(force)
    count = _count_files(storage_dir)
    shutil.rmtree(storage_dir)
    console.print(f"[bold green]Done![/bold green] Removed {count} files.")


@clear_app.command(name="cache")
def clear_cache(
    names: Annotated[list[str], typer.Argument(help="Cache store name(s)")],
    storage_dir: Annotated[
        Path,
        typer.Option("--storage-dir", "-s", help="Storage directory"),
    ] = DEFAULT_STORAGE_DIR,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation prompt"),
    ] = False,
) -> None:
    """Delete named cache stores, leaving the others in place."""
    console.print(f"[bold]Clearing {', '.join(names)}[/bold]")
    console.print(f"  Storage dir: {storage_dir}")
    console.print()

    _confirm_or_exit(force)
    storage = CacheStorage(storage_dir)
    total = 0
    for name in names:
        if not storage.has(name):
            console.print(f"[yellow]{name}:[/yellow] does not exist")
            continue
        count = _count_files(storage.root / name)
        storage.delete(name)
        console.print(f"[green]{name}:[/green] Removed {count} files")
        total += count

    console.print()
    console.print(f"[bold green]Done![/bold green] Removed {total} files.")
