"""Config Commands - view and change CLI settings"""

import typer
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..utils.config_manager import config, flatten, parse_value
from ..utils.formatting import print_error, print_info, print_success

console = Console()
app = typer.Typer(name="config", help="CLI configuration management")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Dotted key, e.g. api.base_url"),
    value: str = typer.Argument(..., help="New value"),
):
    """⚙️ Set a configuration value"""
    try:
        parsed = parse_value(key, value)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    try:
        config.set(key, parsed)
    except OSError as e:
        print_error(f"Could not write configuration: {e}")
        raise typer.Exit(1) from None

    print_success(f"{key} = {parsed}")
    if key == "api.base_url":
        print_info("Check the connection with: jobflow status")


@app.command("get")
def get_config(key: str = typer.Argument(..., help="Dotted key")):
    """📋 Print one configuration value"""
    value = config.get(key)
    if value is None:
        print_error(f"Unknown key '{key}'. See: jobflow config show")
        raise typer.Exit(1)
    console.print(f"[cyan]{key}[/cyan] = [yellow]{value}[/yellow]")


@app.command("show")
def show_all_config():
    """📊 List every setting with its effective value"""
    table = Table(title="CLI configuration", caption=str(config.config_file))
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")
    for key, value in sorted(flatten(config.load_config()).items()):
        table.add_row(key, str(value))
    console.print(table)


@app.command("reset")
def reset_config(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🔄 Forget stored settings and fall back to defaults"""
    if not yes and not Confirm.ask("Reset all CLI settings to defaults?"):
        console.print("Nothing changed.")
        return

    try:
        config.reset()
    except OSError as e:
        print_error(f"Could not reset configuration: {e}")
        raise typer.Exit(1) from None
    print_success("Configuration reset to defaults")
