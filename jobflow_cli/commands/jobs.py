"""Jobs Commands - Submit, inspect, cancel and retry jobs"""

import json

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import JobFlowClient, JobFlowError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_job_panel,
    create_jobs_table,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Job submission and management commands")

JOB_TYPES = ("process", "analyze", "export")


@app.command("submit")
def submit_job(
    name: str = typer.Argument(..., help="Job name"),
    job_type: str = typer.Option(
        "process", "--type", "-t", help="Job type: process, analyze or export"
    ),
    config_json: str | None = typer.Option(
        None, "--config", "-c", help="Job configuration as a JSON object"
    ),
):
    """🚀 Submit a new job"""
    if job_type not in JOB_TYPES:
        print_error(f"Job type must be one of: {', '.join(JOB_TYPES)}")
        raise typer.Exit(1)

    job_config = None
    if config_json:
        try:
            job_config = json.loads(config_json)
        except json.JSONDecodeError as e:
            print_error(f"Invalid --config JSON: {e}")
            raise typer.Exit(1) from None
        if not isinstance(job_config, dict):
            print_error("--config must be a JSON object")
            raise typer.Exit(1)

    base_url = config.get("api.base_url")

    try:
        with JobFlowClient(base_url) as client:
            job = client.submit_job(name, job_type, job_config)

        print_success(f"Job submitted: {job.get('id')}")
        console.print(create_job_panel(job))

    except JobFlowError as e:
        print_error(f"Failed to submit job: {e}")
        raise typer.Exit(1) from None


@app.command("list")
def list_jobs(
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Jobs per page"),
):
    """📋 List jobs, newest first"""
    base_url = config.get("api.base_url")
    limit = limit or int(config.get("display.jobs_per_page", 10))

    try:
        with JobFlowClient(base_url) as client:
            data = client.list_jobs(page=page, limit=limit)

        jobs = data.get("jobs", [])
        total = data.get("total", len(jobs))

        if not jobs:
            console.print(
                Panel(
                    "📭 [yellow]No jobs found![/yellow]\n\n"
                    "Submit one with: [cyan]jobflow jobs submit <name>[/cyan]",
                    title="Empty Results",
                    border_style="yellow",
                )
            )
            return

        console.print(create_jobs_table(jobs))

        current_page = data.get("page", page)
        current_limit = data.get("limit", limit)
        console.print(
            f"\n📊 Page [cyan]{current_page}[/cyan], "
            f"showing [cyan]{len(jobs)}[/cyan] of [yellow]{total}[/yellow] jobs"
        )
        if current_page * current_limit < total:
            console.print(f"💡 Use [cyan]--page {current_page + 1}[/cyan] to see more")

    except JobFlowError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None


@app.command("show")
def show_job(job_id: str = typer.Argument(..., help="Job ID to show")):
    """🔍 Show a job"""
    base_url = config.get("api.base_url")

    try:
        with JobFlowClient(base_url) as client:
            job = client.get_job(job_id)

        console.print(create_job_panel(job))

    except JobFlowError as e:
        print_error(f"Failed to get job: {e}")
        raise typer.Exit(1) from None


@app.command("cancel")
def cancel_job(job_id: str = typer.Argument(..., help="Job ID to cancel")):
    """🛑 Cancel a pending or processing job"""
    base_url = config.get("api.base_url")

    try:
        with JobFlowClient(base_url) as client:
            job = client.cancel_job(job_id)

        print_success(f"Cancellation requested for job {job_id}")
        print_info(f"Status: {job.get('status')}")

    except JobFlowError as e:
        print_error(f"Failed to cancel job: {e}")
        raise typer.Exit(1) from None


@app.command("retry")
def retry_job(job_id: str = typer.Argument(..., help="Job ID to retry")):
    """🔁 Retry a failed job"""
    base_url = config.get("api.base_url")

    try:
        with JobFlowClient(base_url) as client:
            job = client.retry_job(job_id)

        print_success(f"Job {job_id} queued again")
        print_info(f"Retry count: {job.get('retryCount')}")

    except JobFlowError as e:
        print_error(f"Failed to retry job: {e}")
        raise typer.Exit(1) from None
