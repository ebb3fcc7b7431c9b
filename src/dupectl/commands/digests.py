"""Per-file digest commands."""

import json
from pathlib import Path

import typer
from rich.markup import escape

from dupectl.commands.common import engine_options
from dupectl.core.digest import available_algorithms, compute
from dupectl.core.errors import SourceNotFound, Unreadable
from dupectl.core.scanner import check_roots, walk_many
from dupectl.utils.console import console, make_digest_table

app = typer.Typer(help="File digest operations")


@app.command()
def files(
    paths: list[Path] = typer.Argument(..., help="Files or directories to hash"),
    algorithm: list[str] = typer.Option(None, "--algorithm", "-a", help="Digest algorithm (repeatable)"),
    archives: bool = typer.Option(False, "--archives/--no-archives", help="Also hash zip archive members"),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive", "-r/-R"),
    as_json: bool = typer.Option(False, "--json", help="Print digests as JSON"),
):
    """Print digests for files, always reading them (no cache)."""
    options = engine_options(algorithm, None, None, None, None)
    algorithms = options["algorithms"]

    try:
        roots = check_roots(Path(p).expanduser() for p in paths)
    except SourceNotFound as e:
        console.print(f"[error]{e}[/error]")
        raise typer.Exit(1)

    rows = []
    errors = 0
    for source in walk_many(roots, recursive=recursive, archives=archives):
        try:
            fingerprint = compute(source, algorithms, options["chunk_size"])
        except Unreadable as e:
            errors += 1
            console.print(f"[error]Error hashing {escape(e.path)}: {escape(e.reason)}[/error]")
            continue
        if fingerprint.incomplete:
            errors += 1
            console.print(f"[warning]Incomplete read, skipped: {escape(source.identity.path)}[/warning]")
            continue
        rows.append((source.identity.path, fingerprint.hexdigests()))

    if as_json:
        typer.echo(json.dumps([{"path": path, "digests": digests} for path, digests in rows], indent=2))
    else:
        table = make_digest_table(list(algorithms))
        for path, digests in rows:
            table.add_row(escape(path), *(digests[name] for name in algorithms))
        console.print(table)

    if errors:
        raise typer.Exit(1)


@app.command()
def algorithms():
    """List the available digest algorithms."""
    for name in available_algorithms():
        console.print(name)
