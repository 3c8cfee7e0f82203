"""Console script for shell_cache with install/fetch/caches/clear subcommands."""

import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from tqdm import tqdm

from . import __version__
from .cli_clear import DEFAULT_STORAGE_DIR, clear_app
from .controller import (
    CacheStorage,
    ConfigError,
    ControllerConfig,
    FetchResult,
    InstallError,
    InterceptedRequest,
    NetworkFetcher,
    Registration,
    ShellCacheError,
)
from .controller.config import (
    DEFAULT_DYNAMIC_CACHE,
    DEFAULT_SHELL_URLS,
    DEFAULT_STATIC_CACHE,
)
from .controller.registration import read_registration

app = typer.Typer(help="Offline cache controller for a single web origin")
console = Console(force_terminal=True)

app.add_typer(clear_app, name="clear")

StorageDirOption = Annotated[
    Path,
    typer.Option("--storage-dir", "-s", help="Directory holding the cache stores"),
]


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log lifecycle and routing decisions"),
    ] = False,
) -> None:
    """Offline cache controller for a single web origin."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def version() -> None:
    """Print the package version."""
    console.print(__version__, highlight=False)


@app.command()
def install(
    origin: Annotated[
        str,
        typer.Option("--origin", "-o", help="Origin the controller serves"),
    ],
    storage_dir: StorageDirOption = DEFAULT_STORAGE_DIR,
    static_cache: Annotated[
        str,
        typer.Option("--static-cache", help="Versioned static cache name"),
    ] = DEFAULT_STATIC_CACHE,
    dynamic_cache: Annotated[
        str,
        typer.Option("--dynamic-cache", help="Versioned dynamic cache name"),
    ] = DEFAULT_DYNAMIC_CACHE,
    shell_urls: Annotated[
        list[str] | None,
        typer.Option("--shell", help="Shell URL to precache (repeatable)"),
    ] = None,
    freshness_hours: Annotated[
        float,
        typer.Option("--freshness-hours", help="Hours before an asset is stale"),
    ] = 24.0,
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="Network timeout in seconds"),
    ] = 30.0,
) -> None:
    """Install a controller version and activate it immediately."""
    try:
        config = ControllerConfig(
            origin=origin,
            static_cache_name=static_cache,
            dynamic_cache_name=dynamic_cache,
            freshness_threshold=timedelta(hours=freshness_hours),
            shell_urls=tuple(shell_urls) if shell_urls else DEFAULT_SHELL_URLS,
        )
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[bold]Installing {config.static_cache_name}[/bold]")
    console.print(f"  Origin: {config.origin}")
    console.print(f"  Storage dir: {storage_dir}")
    console.print(f"  Shell URLs: {', '.join(config.shell_urls)}")
    console.print()

    async def run_install() -> list[str]:
        async with NetworkFetcher(timeout=timeout) as network:
            registration = Registration(CacheStorage(storage_dir), network)
            registration.load()
            return await registration.update(registration.controller_for(config))

    try:
        deleted = asyncio.run(run_install())
    except InstallError as e:
        console.print(f"[red]Install failed:[/red] {e}")
        console.print("The previously active version (if any) keeps serving.")
        raise typer.Exit(1) from e

    for name in deleted:
        console.print(f"  Deleted old cache: {name}")
    console.print(
        f"[bold green]Done![/bold green] {config.static_cache_name} is active."
    )


def _describe(result: FetchResult) -> str:
    source = f"cache:{result.cache_name}" if result.from_cache else "network"
    return f"{result.status_code} ({source})"


@app.command()
def fetch(
    urls: Annotated[list[str], typer.Argument(help="URLs or origin-relative paths")],
    storage_dir: StorageDirOption = DEFAULT_STORAGE_DIR,
    destination: Annotated[
        str,
        typer.Option("--destination", "-d", help="image, style, script or document"),
    ] = "document",
    method: Annotated[
        str,
        typer.Option("--method", "-X", help="HTTP method"),
    ] = "GET",
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="Network timeout in seconds"),
    ] = 30.0,
) -> None:
    """Route requests through the active controller concurrently."""
    outcomes: dict[int, str] = {}
    failures = 0

    async def run_fetch() -> None:
        nonlocal failures
        async with NetworkFetcher(timeout=timeout) as network:
            registration = Registration(CacheStorage(storage_dir), network)
            active = registration.load()
            if active is None:
                console.print("[yellow]No active controller, network only.[/yellow]")
            requests = [
                InterceptedRequest(url=u, method=method, destination=destination)
                for u in urls
            ]
            if active is None and any(r.is_relative for r in requests):
                console.print("[red]Error:[/red] relative URLs need a controller")
                raise typer.Exit(1)

            async def route(
                index: int, request: InterceptedRequest
            ) -> tuple[int, str, bool]:
                try:
                    result = await registration.handle(request)
                except ShellCacheError as e:
                    return index, f"[red]failed[/red] {e}", False
                return index, _describe(result), True

            pbar = tqdm(total=len(requests), desc="Fetching", unit="req")
            for next_done in asyncio.as_completed(
                [route(i, r) for i, r in enumerate(requests)]
            ):
                index, outcome, succeeded = await next_done
                outcomes[index] = outcome
                failures += 0 if succeeded else 1
                pbar.update(1)
            pbar.close()

    asyncio.run(run_fetch())

    console.print()
    for index, url in enumerate(urls):
        console.print(f"  {url}: {outcomes.get(index, '?')}")
    if failures:
        raise typer.Exit(1)


@app.command()
def caches(storage_dir: StorageDirOption = DEFAULT_STORAGE_DIR) -> None:
    """List cache stores and their entries."""
    if not storage_dir.exists():
        console.print(f"[yellow]{storage_dir} does not exist[/yellow]")
        return
    storage = CacheStorage(storage_dir)
    config = read_registration(storage)
    live = config.cache_names if config else frozenset()

    names = storage.keys()
    if not names:
        console.print("[yellow]No caches found.[/yellow]")
        return
    for name in names:
        entries = storage.open(name).keys()
        marker = "[green]live[/green]" if name in live else "[yellow]stale[/yellow]"
        console.print(f"[bold]{name}[/bold] {marker} ({len(entries)} entries)")
        for url in entries:
            console.print(f"  {url}")


if __name__ == "__main__":
    app()
