"""Option resolution and progress wiring shared by the commands."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from dupectl.core.cache import CacheStore
from dupectl.core.digest import resolve_algorithms
from dupectl.core.errors import CacheUnavailable, UnknownAlgorithm
from dupectl.core.index import MATCH_MODES
from dupectl.core.pool import ProgressEvent
from dupectl.utils.config import get_config
from dupectl.utils.console import console, format_size

logger = logging.getLogger(__name__)


def engine_options(
    algorithms: list[str] | None,
    primary: str | None,
    match: str | None,
    workers: int | None,
    chunk_size: int | None,
) -> dict:
    """Merge command-line overrides into the configured engine settings."""
    config = get_config()
    if config.error:
        console.print(f"[warning]Ignoring unreadable config: {config.error}[/warning]")

    try:
        resolved = resolve_algorithms(algorithms or config.get("engine", "algorithms"))
    except (UnknownAlgorithm, ValueError) as e:
        console.print(f"[error]{e}[/error]")
        raise typer.Exit(2)

    primary = primary or config.get("engine", "primary") or resolved[0]
    if primary not in resolved:
        console.print(f"[error]Primary algorithm {primary} is not among: {', '.join(resolved)}[/error]")
        raise typer.Exit(2)

    match = match or config.get("engine", "match")
    if match not in MATCH_MODES:
        console.print(f"[error]Unknown match mode: {match} (use {' or '.join(MATCH_MODES)})[/error]")
        raise typer.Exit(2)

    return {
        "algorithms": resolved,
        "primary": primary,
        "mode": match,
        "workers": workers or config.get("engine", "workers") or None,
        "chunk_size": chunk_size or config.get("engine", "chunk_size"),
    }


def cache_path(override: Path | None = None) -> Path:
    return (override or Path(get_config().get("cache", "path"))).expanduser()


@contextmanager
def open_cache(override: Path | None, disabled: bool) -> Iterator[CacheStore]:
    """Open the fingerprint cache, falling back to no cache if it is unusable."""
    if disabled or not get_config().get("cache", "enabled", True):
        yield CacheStore.disabled()
        return

    store = CacheStore(cache_path(override))
    try:
        store.open()
    except CacheUnavailable as e:
        logger.warning("Fingerprint cache unavailable, hashing everything: %s", e)
        console.print(f"[warning]Cache unavailable, continuing without it: {e}[/warning]")
        yield CacheStore.disabled()
        return

    try:
        yield store
    finally:
        store.close()


@contextmanager
def scan_progress(enabled: bool = True):
    """Spinner fed by engine progress events. Yields the callback (or None)."""
    if not enabled:
        yield None
        return

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Fingerprinting...", total=None)

        def on_progress(event: ProgressEvent) -> None:
            progress.update(
                task,
                description=(
                    f"Fingerprinting... {event.files_completed} files, "
                    f"{format_size(event.bytes_processed)} read, {event.cache_hits} cached"
                ),
            )

        yield on_progress
