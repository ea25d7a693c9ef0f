"""Reverse-engineering commands: test-connection, names and data."""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typing_extensions import Annotated

from ..api import CollectionRequest, CollectionResult, Orchestrator
from ..connection import ConnectionInfo
from ..errors import ReverseEngineeringError
from ..host import ConsoleHostLogger
from ..logging import log_run
from ..sampling import SamplingMode, SamplingSettings

app = typer.Typer(help="Reverse-engineering commands")
console = Console()

TargetOption = Annotated[Optional[str], typer.Option("--target", "-t", help="Warehouse: bigquery or snowflake (or DEFAULT_TARGET env)")]
ProjectOption = Annotated[Optional[str], typer.Option("--project", help="GCP project (or BIGQUERY_PROJECT_ID env)")]
KeyFileOption = Annotated[Optional[str], typer.Option("--key-file", help="Service account JSON key (or BIGQUERY_KEY_FILENAME env)")]
LocationOption = Annotated[Optional[str], typer.Option("--location", help="BigQuery location")]
AccountOption = Annotated[Optional[str], typer.Option("--account", "-a", help="Snowflake account (or SNOWFLAKE_ACCOUNT env)")]
UserOption = Annotated[Optional[str], typer.Option("--user", "-u", help="Snowflake user (or SNOWFLAKE_USER env)")]
PasswordOption = Annotated[Optional[str], typer.Option("--password", help="Snowflake password (or SNOWFLAKE_PASSWORD env)")]
WarehouseOption = Annotated[Optional[str], typer.Option("--warehouse", help="Snowflake warehouse (or SNOWFLAKE_WAREHOUSE env)")]
RoleOption = Annotated[Optional[str], typer.Option("--role", "-r", help="Snowflake role (or SNOWFLAKE_ROLE env)")]
DatabaseOption = Annotated[Optional[str], typer.Option("--database", "-d", help="Snowflake database to restrict listing to")]


def build_connection_info(
    target: Optional[str] = None,
    project: Optional[str] = None,
    key_file: Optional[str] = None,
    location: Optional[str] = None,
    account: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    warehouse: Optional[str] = None,
    role: Optional[str] = None,
    database: Optional[str] = None,
) -> ConnectionInfo:
    """Build connection info from CLI options; unset options fall back to settings."""
    options = {
        "target": target,
        "projectId": project,
        "keyFilename": key_file,
        "location": location,
        "account": account,
        "user": user,
        "password": password,
        "warehouse": warehouse,
        "role": role,
        "database": database,
    }
    return ConnectionInfo.from_dict({k: v for k, v in options.items() if v is not None})


def build_sampling(absolute: Optional[int], relative: Optional[float]) -> SamplingSettings:
    """Pick the sampling mode from whichever option was given."""
    if absolute is not None and relative is not None:
        console.print("[red]Error: use either --absolute or --relative, not both[/red]")
        raise typer.Exit(1)

    defaults = SamplingSettings.from_settings()
    if absolute is not None:
        return SamplingSettings(mode=SamplingMode.ABSOLUTE, absolute=absolute, relative=defaults.relative)
    if relative is not None:
        return SamplingSettings(mode=SamplingMode.RELATIVE, absolute=defaults.absolute, relative=relative)
    return defaults


def _print_error(action: str, error: Exception):
    code = getattr(error, "code", None)
    prefix = f"[{code}] " if code else ""
    console.print(f"[red]Error {action}:[/red] {escape(prefix + str(error))}", highlight=False)


@app.command("test-connection")
def test_connection(
    target: TargetOption = None,
    project: ProjectOption = None,
    key_file: KeyFileOption = None,
    location: LocationOption = None,
    account: AccountOption = None,
    user: UserOption = None,
    password: PasswordOption = None,
    warehouse: WarehouseOption = None,
    role: RoleOption = None,
    database: DatabaseOption = None,
):
    """Check that the warehouse is reachable with the given credentials."""
    try:
        info = build_connection_info(target, project, key_file, location, account, user, password, warehouse, role, database)
        with log_run("test-connection", info.target.value, arguments=info.to_log_payload()):
            asyncio.run(Orchestrator().test(info, ConsoleHostLogger(show_progress=False)))
    except ReverseEngineeringError as e:
        _print_error("connecting", e)
        raise typer.Exit(1)

    console.print(f"[green]Connected to {info.target.value}[/green]")


@app.command("names")
def names(
    target: TargetOption = None,
    project: ProjectOption = None,
    key_file: KeyFileOption = None,
    location: LocationOption = None,
    account: AccountOption = None,
    user: UserOption = None,
    password: PasswordOption = None,
    warehouse: WarehouseOption = None,
    role: RoleOption = None,
    database: DatabaseOption = None,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the listing as JSON to this file"),
):
    """List schemas with their tables and views."""
    try:
        info = build_connection_info(target, project, key_file, location, account, user, password, warehouse, role, database)
        with log_run("names", info.target.value, arguments=info.to_log_payload()) as ctx:
            listing = asyncio.run(Orchestrator().collect_names(info, ConsoleHostLogger(show_progress=False)))
            ctx.schemas_count = len(listing)
    except ReverseEngineeringError as e:
        _print_error("listing entities", e)
        raise typer.Exit(1)

    if output:
        _write_json(output, listing)
        console.print(f"[green]Wrote {len(listing)} schema(s) to {output}[/green]")
        return

    if not listing:
        console.print("[yellow]No schemas found.[/yellow]")
        return

    table = Table(title="Schemas")
    table.add_column("Schema", style="cyan")
    table.add_column("Entities", style="green")
    table.add_column("Empty", style="magenta")
    for entry in listing:
        table.add_row(
            entry["dbName"],
            ", ".join(entry["dbCollections"]) or "-",
            "Yes" if entry["isEmpty"] else "No",
        )
    console.print(table)


@app.command("data")
def data(
    target: TargetOption = None,
    project: ProjectOption = None,
    key_file: KeyFileOption = None,
    location: LocationOption = None,
    account: AccountOption = None,
    user: UserOption = None,
    password: PasswordOption = None,
    warehouse: WarehouseOption = None,
    role: RoleOption = None,
    database: DatabaseOption = None,
    schemas: Annotated[Optional[List[str]], typer.Option(
        "--schema", "-s",
        help="Schema (dataset) to reverse engineer; repeat for several (default: all)",
    )] = None,
    absolute: Optional[int] = typer.Option(None, "--absolute", help="Sample a fixed number of rows per table"),
    relative: Optional[float] = typer.Option(None, "--relative", help="Sample a percentage (0-100) of each table's rows"),
    fail_fast: Optional[bool] = typer.Option(
        None, "--fail-fast/--skip-failures",
        help="Abort on the first failed entity instead of skipping it (or FAIL_FAST env)",
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write packages and warnings as JSON to this file"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide per-entity progress"),
):
    """Sample tables, infer JSON schemas and collect DDL for the selected schemas."""
    try:
        sampling = build_sampling(absolute, relative)
        info = build_connection_info(target, project, key_file, location, account, user, password, warehouse, role, database)
        arguments = {
            "connection": info.to_log_payload(),
            "sampling": sampling.to_dict(),
            "fail_fast": fail_fast,
            "output": output,
        }
        with log_run("data", info.target.value, schemas or None, arguments) as ctx:
            result = asyncio.run(_collect(info, schemas or [], sampling, fail_fast, quiet))
            ctx.schemas_count = len({p.db_name for p in result.packages})
            ctx.tables_count = sum(1 for p in result.packages if not p.is_view_package)
            ctx.views_count = sum(len(p.views) for p in result.packages if p.is_view_package)
            ctx.documents_count = result.documents_count
            ctx.warnings_count = len(result.warnings)
    except ReverseEngineeringError as e:
        _print_error("collecting data", e)
        raise typer.Exit(1)

    if output:
        _write_json(output, result.to_dict())
        console.print(f"[green]Wrote {len(result.packages)} package(s) to {output}[/green]")
    else:
        _print_result(result)

    if result.warnings:
        console.print(f"[yellow]{len(result.warnings)} entity(ies) skipped:[/yellow]")
        for warning in result.warnings:
            name = ".".join(filter(None, [warning["containerName"], warning["entityName"]]))
            detail = f"{name} [{warning['code']}] {warning['message']}"
            console.print(f"  - {escape(detail)}", highlight=False)


async def _collect(
    info: ConnectionInfo,
    schemas: List[str],
    sampling: SamplingSettings,
    fail_fast: Optional[bool],
    quiet: bool,
) -> CollectionResult:
    """List entities of the selected schemas, then collect their packages."""
    orchestrator = Orchestrator(fail_fast=fail_fast)
    host_logger = ConsoleHostLogger(show_progress=not quiet)

    listing = await orchestrator.collect_names(info, host_logger)
    if schemas:
        known = {entry["dbName"] for entry in listing}
        for missing in [s for s in schemas if s not in known]:
            console.print(f"[yellow]Schema not found: {missing}[/yellow]")
        listing = [entry for entry in listing if entry["dbName"] in schemas]

    request = CollectionRequest(
        connection_info=info,
        database_names=[entry["dbName"] for entry in listing],
        collections={entry["dbName"]: entry["dbCollections"] for entry in listing},
        sampling=sampling,
        fail_fast=fail_fast,
    )
    return await orchestrator.collect_data(request, host_logger)


def _print_result(result: CollectionResult):
    if not result.packages:
        console.print("[yellow]No entities collected.[/yellow]")
        return

    table = Table(title="Collected Entities")
    table.add_column("Schema", style="cyan")
    table.add_column("Entity", style="green")
    table.add_column("Kind", style="blue")
    table.add_column("Documents", justify="right")
    table.add_column("Properties", justify="right")

    for package in result.packages:
        if package.is_view_package:
            for view in package.views:
                table.add_row(package.db_name, view["name"], "view", "-", "-")
            continue
        properties = (package.json_schema or {}).get("properties", {})
        table.add_row(
            package.db_name,
            package.collection_name,
            "table",
            str(len(package.documents)),
            str(len(properties)),
        )
    console.print(table)


def _write_json(path: str, payload: Any):
    Path(path).write_text(json.dumps(payload, indent=2, default=str))
