"""Duplicate file detection commands."""

import json
from pathlib import Path

import typer
from rich.markup import escape

from dupectl.commands.common import engine_options, open_cache, scan_progress
from dupectl.core.engine import RunSummary, compare_trees, run_scan
from dupectl.core.errors import SourceNotFound
from dupectl.core.index import total_reclaimable
from dupectl.utils.config import get_config
from dupectl.utils.console import console, format_size, make_group_table, make_skipped_table

app = typer.Typer(help="Duplicate detection operations")


@app.command()
def find(
    paths: list[Path] = typer.Argument(..., help="Files or directories to scan"),
    algorithm: list[str] = typer.Option(None, "--algorithm", "-a", help="Digest algorithm (repeatable)"),
    primary: str = typer.Option(None, "--primary", help="Algorithm used with --match primary"),
    match: str = typer.Option(None, "--match", help="Group when 'all' algorithms agree or only the 'primary' one"),
    workers: int = typer.Option(None, "--jobs", "-j", help="Concurrent hash computations"),
    chunk_size: int = typer.Option(None, "--chunk-size", help="Bytes read per chunk"),
    cache: Path = typer.Option(None, "--cache", help="Fingerprint cache file"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Hash every file, do not read or write the cache"),
    archives: bool = typer.Option(None, "--archives/--no-archives", help="Also fingerprint zip archive members"),
    recursive: bool = typer.Option(None, "--recursive/--no-recursive", "-r/-R"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    max_files: int = typer.Option(20, "--max-files", help="Files listed per group"),
):
    """Find files with identical content (byte-level, via digests)."""
    options = engine_options(algorithm, primary, match, workers, chunk_size)
    config = get_config()
    if archives is None:
        archives = config.get("scan", "archives", True)
    if recursive is None:
        recursive = config.get("scan", "recursive", True)

    targets = [Path(p).expanduser().resolve() for p in paths]

    with open_cache(cache, no_cache) as store:
        with scan_progress(enabled=not as_json) as on_progress:
            try:
                summary = run_scan(
                    targets,
                    cache=store,
                    recursive=recursive,
                    archives=archives,
                    progress=on_progress,
                    **options,
                )
            except SourceNotFound as e:
                console.print(f"[error]{e}[/error]")
                raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(summary_to_dict(summary), indent=2))
    else:
        _print_summary(summary, max_files)

    if summary.cancelled:
        raise typer.Exit(130)


def summary_to_dict(summary: RunSummary) -> dict:
    """Plain-data report for JSON output."""
    return {
        "algorithms": list(summary.algorithms),
        "groups": [
            {
                "size": group.size,
                "reclaimable": group.reclaimable,
                "digests": group.digests,
                "files": group.paths,
            }
            for group in summary.groups
        ],
        "skipped": [
            {"path": s.path, "reason": s.reason, "message": s.message}
            for s in summary.skipped
        ],
        "stats": {
            "files": summary.files_seen,
            "hashed": summary.computed,
            "cached": summary.cache_hits,
            "bytes_read": summary.bytes_processed,
            "cancelled": summary.cancelled,
            "cache_degraded": summary.cache_degraded,
        },
    }


def _print_summary(summary: RunSummary, max_files: int) -> None:
    groups = summary.groups

    if summary.cancelled:
        console.print("\n[warning]Operation cancelled by user; results cover completed files only[/warning]")

    if not groups:
        console.print("\n[success]No duplicates found![/success]")
    else:
        table = make_group_table(f"Duplicate Files ({len(groups)} groups)")
        for i, group in enumerate(groups, 1):
            table.add_row(str(i), str(group.count), format_size(group.size), format_size(group.reclaimable))

            console.print(f"\n[bold cyan]Group {i}:[/bold cyan]")
            for name, digest in group.digests.items():
                console.print(f"  [dim]{name}[/dim] [digest]{digest}[/digest]")
            for j, path in enumerate(group.paths[:max_files], 1):
                console.print(f"  {j}. {escape(path)}")
            if group.count > max_files:
                console.print(f"  [dim]... ({group.count - max_files} more files)[/dim]")

        console.print()
        console.print(table)

    if summary.skipped:
        console.print()
        skipped = make_skipped_table(f"Skipped Files ({len(summary.skipped)})")
        for entry in summary.skipped:
            skipped.add_row(escape(entry.path), entry.reason, escape(entry.message))
        console.print(skipped)

    console.print(f"\n[bold]Summary:[/bold]")
    console.print(f"  Files fingerprinted: [bold]{len(summary.fingerprints)}[/bold]")
    console.print(f"  Hashed: {summary.computed}, from cache: {summary.cache_hits}")
    console.print(f"  Duplicate files: [bold]{sum(g.count - 1 for g in groups)}[/bold]")
    console.print(f"  Reclaimable space: [bold]{format_size(total_reclaimable(groups))}[/bold]")
    console.print(f"  Skipped due to errors: [bold]{len(summary.skipped)}[/bold]")
    if summary.cache_degraded:
        console.print("[warning]Cache failed during the run; some fingerprints were recomputed[/warning]")
    console.print()


@app.command()
def compare(
    master: Path = typer.Argument(..., help="Reference directory"),
    shrink: Path = typer.Argument(..., help="Directory checked against the reference"),
    algorithm: list[str] = typer.Option(None, "--algorithm", "-a", help="Digest algorithm (repeatable)"),
    workers: int = typer.Option(None, "--jobs", "-j", help="Concurrent hash computations"),
    cache: Path = typer.Option(None, "--cache", help="Fingerprint cache file"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Hash every file, do not read or write the cache"),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive", "-r/-R"),
):
    """List files in SHRINK identical to the same relative path in MASTER.

    Nothing is deleted; the list is meant for a separate cleanup step.
    """
    options = engine_options(algorithm, None, None, workers, None)
    options.pop("mode")
    options.pop("primary")

    with open_cache(cache, no_cache) as store:
        with scan_progress() as on_progress:
            try:
                result = compare_trees(
                    Path(master).expanduser().resolve(),
                    Path(shrink).expanduser().resolve(),
                    cache=store,
                    recursive=recursive,
                    progress=on_progress,
                    **options,
                )
            except (SourceNotFound, ValueError) as e:
                console.print(f"[error]{e}[/error]")
                raise typer.Exit(1)

    for _, shrink_path in result.matches:
        console.print(f"  [success]same[/success] {escape(shrink_path)}")
    for _, shrink_path in result.different:
        console.print(f"  [warning]different[/warning] {escape(shrink_path)}")
    for entry in result.skipped:
        console.print(f"  [error]skipped[/error] {escape(entry.path)}: {escape(entry.message)}")

    console.print(f"\n[bold]Summary:[/bold]")
    console.print(f"  Same: [bold]{len(result.matches)}[/bold]")
    console.print(f"  Different: {len(result.different)}")
    console.print(f"  Not in shrink: {result.missing}")
    console.print(f"  Skipped due to errors: {len(result.skipped)}")

    if result.cancelled:
        console.print("\n[warning]Operation cancelled by user[/warning]")
        raise typer.Exit(130)
