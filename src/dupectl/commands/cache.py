"""Fingerprint cache commands."""

from pathlib import Path

import typer

from dupectl.commands.common import cache_path
from dupectl.core.cache import CacheStore
from dupectl.core.errors import CacheUnavailable
from dupectl.utils.console import console, format_size

app = typer.Typer(help="Fingerprint cache maintenance")


def _open(override: Path | None) -> CacheStore:
    db_path = cache_path(override)
    if not db_path.exists():
        console.print(f"[warning]Cache does not exist yet:[/warning] {db_path}")
        raise typer.Exit(0)
    try:
        return CacheStore(db_path).open()
    except CacheUnavailable as e:
        console.print(f"[error]Cannot open cache: {e}[/error]")
        raise typer.Exit(1)


@app.command()
def info(
    cache: Path = typer.Option(None, "--cache", help="Fingerprint cache file"),
):
    """Show cache location, size and how many digests it holds."""
    store = _open(cache)
    try:
        stats = store.stats()
    finally:
        store.close()

    console.print(f"[bold]Cache file:[/bold] {store.db_path}")
    console.print(f"[bold]Size on disk:[/bold] {format_size(store.db_path.stat().st_size)}")
    console.print(f"[bold]Files:[/bold] {stats.pop('rows', 0)}")
    for name, count in stats.items():
        console.print(f"  {name}: {count}")


@app.command()
def path(
    cache: Path = typer.Option(None, "--cache", help="Fingerprint cache file"),
):
    """Show the cache file path."""
    typer.echo(str(cache_path(cache)))


@app.command()
def forget(
    prefix: Path = typer.Argument(..., help="Drop cached fingerprints for this path and everything below it"),
    cache: Path = typer.Option(None, "--cache", help="Fingerprint cache file"),
):
    """Remove cached fingerprints below a path (the files themselves are untouched)."""
    store = _open(cache)
    try:
        removed = store.forget(str(Path(prefix).expanduser().resolve()))
    finally:
        store.close()
    console.print(f"[success]Removed {removed} cached fingerprints[/success]")
