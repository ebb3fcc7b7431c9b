"""Logging setup for the command line."""

import logging

from rich.logging import RichHandler

from dupectl.utils.console import err_console

LOG_FORMAT = "%(message)s"


def setup_logging(verbose: int = 0) -> None:
    """Route log records through rich on stderr.

    0 shows warnings, 1 adds progress info, 2 or more enables debug output.
    """
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose >= 2, rich_tracebacks=True)],
        force=True,
    )
