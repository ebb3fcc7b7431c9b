"""dupectl - file fingerprinting and duplicate detection CLI."""

import typer

from dupectl import __version__
from dupectl.commands import cache, config, digests, dupes
from dupectl.utils.log import setup_logging


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        typer.echo(f"dupectl version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="dupectl",
    help="Fingerprint files, cache their digests and report duplicates.",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="More log output (-v info, -vv debug)"),
):
    """dupectl - duplicate file finder."""
    setup_logging(verbose)


app.add_typer(dupes.app, name="dupes")
app.add_typer(digests.app, name="hash")
app.add_typer(cache.app, name="cache")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
