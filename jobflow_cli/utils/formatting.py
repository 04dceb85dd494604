"""Rich Formatting Utilities for CLI Output"""

import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "blue",
    "completed": "green",
    "failed": "red",
    "cancelling": "magenta",
    "cancelled": "dim",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def format_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for the jobs list"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Name", justify="left", style="white")
    table.add_column("Type", justify="center", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Retries", justify="center", style="yellow")
    table.add_column("Created", justify="left", style="blue")

    for job in jobs:
        table.add_row(
            job.get("id", ""),
            job.get("name", ""),
            job.get("jobType", ""),
            format_status(job.get("status", "")),
            str(job.get("retryCount", 0)),
            job.get("createdAt", "-"),
        )

    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create a detail panel for one job"""
    content = (
        f"🆔 [bold]ID:[/bold] [cyan]{job.get('id', 'unknown')}[/cyan]\n"
        f"📝 [bold]Name:[/bold] {job.get('name', '')}\n"
        f"⚙️ [bold]Type:[/bold] [magenta]{job.get('jobType', 'unknown')}[/magenta]\n"
        f"📊 [bold]Status:[/bold] {format_status(job.get('status', 'unknown'))}\n"
        f"🔁 [bold]Retries:[/bold] [yellow]{job.get('retryCount', 0)}[/yellow]\n"
        f"📅 [bold]Created:[/bold] [blue]{job.get('createdAt', 'unknown')}[/blue]\n"
        f"🕒 [bold]Updated:[/bold] [blue]{job.get('updatedAt', 'unknown')}[/blue]"
    )

    if job.get("errorMessage"):
        content += f"\n❌ [bold]Error:[/bold] [red]{job['errorMessage']}[/red]"

    if job.get("config"):
        content += f"\n🧩 [bold]Config:[/bold] {json.dumps(job['config'])}"

    return Panel(content, title="Job", border_style="blue")
