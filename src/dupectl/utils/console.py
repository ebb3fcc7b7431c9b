"""Rich console setup and shared output helpers."""

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "digest": "bold cyan",
        "path": "dim",
    }
)

console = Console(theme=custom_theme)
err_console = Console(stderr=True, theme=custom_theme)


def make_group_table(title: str = "Duplicate Groups") -> Table:
    """Create a consistently styled table summarizing duplicate groups."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Group", style="cyan", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("File Size", justify="right")
    table.add_column("Reclaimable", justify="right")
    return table


def make_digest_table(algorithms: list[str], title: str = "Digests") -> Table:
    """Create a table with one column per digest algorithm."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("File", style="path")
    for name in algorithms:
        table.add_column(name, style="digest", no_wrap=True)
    return table


def make_skipped_table(title: str = "Skipped Files") -> Table:
    """Create a table listing files left out of the results."""
    table = Table(title=title, show_header=True, header_style="bold yellow")
    table.add_column("File", style="path")
    table.add_column("Reason", style="warning")
    table.add_column("Detail")
    return table


def format_size(size_bytes: int) -> str:
    """Format byte size as human-readable string (KB, MB, GB)."""
    if size_bytes >= 1024**3:
        return f"{size_bytes / 1024**3:.2f} GB"
    elif size_bytes >= 1024**2:
        return f"{size_bytes / 1024**2:.2f} MB"
    elif size_bytes >= 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes} bytes"
