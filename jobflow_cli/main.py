"""Job Processor CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from .client.endpoints import JobFlowClient, JobFlowError
from .commands import config, jobs
from .utils.config_manager import config as config_manager
from .utils.formatting import print_error, print_info

console = Console()

app = typer.Typer(
    name="jobflow",
    help="⚙️ Job Processor - submit and manage asynchronous jobs",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check API status and job backlog"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with JobFlowClient(base_url) as client:
            health = client.health_check()
    except JobFlowError as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the Job Processor API is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"You can update the API URL with:\n"
                f"[cyan]jobflow config set api.base_url <url>[/cyan]",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    jobs_health = health.get("jobs") or {}
    by_status = jobs_health.get("by_status", {})
    counts = "\n".join(
        f"  • {job_status}: [cyan]{count}[/cyan]"
        for job_status, count in by_status.items()
    )

    console.print(
        Panel(
            f"🚀 [green]Connected Successfully![/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Queue: [magenta]{health.get('queue_backend', 'unknown')}[/magenta]\n"
            f"• Backlog: [cyan]{jobs_health.get('backlog', 0)}[/cyan]\n"
            f"• API URL: [blue]{base_url}[/blue]"
            + (f"\n\n[bold]Jobs by status[/bold]\n{counts}" if counts else ""),
            title="System Status",
            border_style="green",
        )
    )


@app.command()
def version():
    """📎 Show CLI version information"""
    from . import __version__

    console.print(
        Panel(
            f"⚙️ [bold cyan]Job Processor CLI[/bold cyan]\n\n"
            f"• Version: [green]{__version__}[/green]",
            title="Version Info",
            border_style="cyan",
        )
    )


@app.command()
def quickstart():
    """🚀 Quick start guide"""
    console.print(
        Panel(
            "⚙️ [bold cyan]Job Processor Quick Start[/bold cyan]\n\n"
            "[bold]1. Check Status[/bold]\n"
            "   [dim]jobflow status[/dim]\n\n"
            "[bold]2. Submit a Job[/bold]\n"
            "   [dim]jobflow jobs submit nightly-report --type export[/dim]\n\n"
            "[bold]3. Watch It[/bold]\n"
            "   [dim]jobflow jobs list[/dim]\n\n"
            "[bold]4. Cancel or Retry[/bold]\n"
            "   [dim]jobflow jobs cancel <id>[/dim]\n"
            "   [dim]jobflow jobs retry <id>[/dim]\n\n"
            "[bold yellow]Tip:[/bold yellow] Use [cyan]--help[/cyan] with any command for more options!",
            title="Quick Start Guide",
            border_style="green",
        )
    )


if __name__ == "__main__":
    app()
