"""Run log commands."""

import typer
from typing import Optional
from rich.console import Console
from rich.table import Table
from ..logging import get_run_logger

app = typer.Typer(help="Inspect recorded reverse-engineering runs")
console = Console()

STATUS_STYLES = {"success": "green", "error": "red", "started": "yellow"}


@app.command("list")
def list_runs(
    command: Optional[str] = typer.Option(None, "--command", "-c", help="Filter by command (e.g. data)"),
    status: Optional[str] = typer.Option(None, "--status", help="Filter by status: started, success, error"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Filter by warehouse"),
    since_hours: int = typer.Option(24, "--since", help="Look back N hours"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of runs"),
):
    """List recent runs, newest first."""
    run_logger = get_run_logger()
    if not run_logger.enabled:
        console.print("[yellow]Run logging is disabled (RUN_LOGGING_ENABLED=false).[/yellow]")
        return

    runs = run_logger.query_runs(command=command, status=status, target=target, since_hours=since_hours, limit=limit)
    if not runs:
        console.print(f"[yellow]No runs in the last {since_hours} hour(s).[/yellow]")
        return

    table = Table(title="Runs")
    table.add_column("Run ID", style="cyan")
    table.add_column("Timestamp (UTC)")
    table.add_column("Command", style="blue")
    table.add_column("Target", style="magenta")
    table.add_column("Status")
    table.add_column("Tables", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Duration", justify="right")

    for run in runs:
        style = STATUS_STYLES.get(run["status"], "white")
        duration = f"{run['duration_ms']}ms" if run.get("duration_ms") is not None else "-"
        table.add_row(
            run["run_id"],
            run["timestamp"],
            run["command"],
            run.get("target") or "-",
            f"[{style}]{run['status']}[/{style}]",
            str(run["tables_count"]) if run.get("tables_count") is not None else "-",
            str(run["warnings_count"]) if run.get("warnings_count") is not None else "-",
            duration,
        )

    console.print(table)


@app.command("show")
def show_run(run_id: str = typer.Argument(..., help="Run ID")):
    """Show the details of one run."""
    run = get_run_logger().get_run(run_id)
    if run is None:
        console.print(f"[red]Run not found: {run_id}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]Run: {run['run_id']}[/bold]")
    for key in (
        "timestamp", "command", "target", "schema_filter", "arguments", "status", "duration_ms",
        "schemas_count", "tables_count", "views_count", "documents_count", "warnings_count",
        "python_version", "package_version", "working_directory",
    ):
        console.print(f"  {key}: {run.get(key) if run.get(key) is not None else 'N/A'}", highlight=False, markup=False)

    if run["status"] == "error":
        console.print()
        console.print(f"[red]{run.get('error_type')} ({run.get('error_code')})[/red]")
        console.print(run.get("error_message") or "", markup=False)
        if run.get("error_traceback"):
            console.print(run["error_traceback"], markup=False, highlight=False)


@app.command("stats")
def stats(since_hours: int = typer.Option(24, "--since", help="Look back N hours")):
    """Show run statistics."""
    run_logger = get_run_logger()
    if not run_logger.enabled:
        console.print("[yellow]Run logging is disabled (RUN_LOGGING_ENABLED=false).[/yellow]")
        return

    data = run_logger.get_stats(since_hours=since_hours)
    console.print(f"[bold]Runs in the last {since_hours} hour(s)[/bold]")
    console.print(f"  Total: {data['total_runs']}")
    console.print(f"  Success: [green]{data['success_count']}[/green]")
    console.print(f"  Errors: [red]{data['error_count']}[/red]")
    console.print(f"  Average duration: {data['avg_duration_ms']}ms")
    console.print(f"  Tables processed: {data['total_tables_processed']}")
    console.print(f"  Documents sampled: {data['total_documents_sampled']}")
    console.print(f"  Entities skipped: {data['total_warnings']}")

    if data["by_target"]:
        table = Table(title="By warehouse")
        table.add_column("Target", style="magenta")
        table.add_column("Runs", justify="right")
        table.add_column("Success", justify="right")
        table.add_column("Errors", justify="right")
        for row in data["by_target"]:
            table.add_row(row["target"], str(row["count"]), str(row["success"]), str(row["errors"]))
        console.print(table)

    if data["recent_errors"]:
        console.print("[bold]Recent errors:[/bold]")
        for err in data["recent_errors"]:
            console.print(
                f"  {err['run_id']} {err['timestamp']} {err['command']} [{err.get('error_code')}] {err['error_message']}",
                markup=False,
                highlight=False,
            )
