"""warehouse-re - Main entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from .commands import reverse, runs
from .config import settings

app = typer.Typer(
    name="warehouse-re",
    help="Reverse engineer BigQuery and Snowflake schemas into JSON Schema packages",
    add_completion=False,
)

# Add subcommands
app.add_typer(reverse.app)
app.add_typer(runs.app, name="runs")

console = Console()


def configure_logging(level: str):
    """Send library logs to stderr through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def config():
    """Show current configuration."""
    console.print("[bold]Current Configuration[/bold]")
    console.print(f"  Default target: {settings.default_target}")
    console.print(f"  BigQuery project: {settings.bigquery_project_id or 'Not set'}")
    console.print(f"  BigQuery key file: {settings.bigquery_key_filename or 'Application default credentials'}")
    console.print(f"  Snowflake account: {settings.snowflake_account or 'Not set'}")
    console.print(f"  Snowflake user: {settings.snowflake_user or 'Not set'}")
    console.print(f"  Snowflake password configured: {'Yes' if settings.snowflake_password else 'No'}")
    console.print(f"  Snowflake warehouse: {settings.snowflake_warehouse or 'Not set'}")
    console.print(f"  Sampling: {settings.sampling_mode} "
                  f"(absolute={settings.sampling_absolute_value}, relative={settings.sampling_relative_value}%)")
    console.print(f"  Fail fast: {'Yes' if settings.fail_fast else 'No'}")
    console.print(f"  Run logging: {'Enabled' if settings.run_logging_enabled else 'Disabled'}")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """
    warehouse-re - Reverse engineer warehouse schemas.

    Samples tables, infers JSON schemas and collects DDL and metadata.

    Examples:

        warehouse-re test-connection --target bigquery --project my-project

        warehouse-re names --target snowflake --account xy12345 --user me

        warehouse-re data --target bigquery --schema sales --relative 10 -o sales.json

        warehouse-re runs list --status error
    """
    configure_logging("DEBUG" if verbose else settings.log_level)


if __name__ == "__main__":
    app()
