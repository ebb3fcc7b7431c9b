"""Configuration management commands."""

import typer

from dupectl.utils.config import get_config
from dupectl.utils.console import console

app = typer.Typer(help="Configuration management")


@app.command()
def init():
    """Create a default config file at ~/.config/dupectl/config.toml."""
    config = get_config()

    if config.config_file.exists():
        console.print(f"[warning]Config file already exists:[/warning] {config.config_file}")
        console.print("[info]Edit the file directly or delete it to regenerate[/info]")
        raise typer.Exit(0)

    config.create_example_config()
    console.print(f"[success]Created config file:[/success] {config.config_file}")
    console.print()
    console.print("[info]Edit this file to customize dupectl behavior[/info]")


@app.command()
def show():
    """Show the config file, any error loading it, and the settings in effect."""
    config = get_config()

    console.print(f"[bold]Config file location:[/bold] {config.config_file}")
    console.print()

    if not config.config_file.exists():
        console.print("[warning]Config file does not exist[/warning]")
        console.print("[info]Run 'dupectl config init' to create one[/info]")
    elif config.error:
        console.print(f"[error]Config file could not be loaded:[/error] {config.error}")
        console.print("[info]Built-in defaults are in use until it is fixed[/info]")
    else:
        console.print("[bold]Current configuration:[/bold]")
        console.print()
        console.print(config.config_file.read_text(), markup=False, highlight=False)

    console.print()
    console.print("[bold]Effective settings:[/bold]")
    for section, values in config.effective().items():
        console.print(f"  [cyan]{section}[/cyan]")
        for key, value in values.items():
            console.print(f"    {key} = {value!r}", markup=False, highlight=False)


@app.command()
def path():
    """Show the config file path."""
    config = get_config()
    typer.echo(str(config.config_file))
