"""
CLI interface for Dispenser Billing.

Provides command-line access to dispenser registration, tap control and
usage reports. The CLI keeps state in a SQLite database so it survives
between invocations.
"""

import json
import sys
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dispenser_billing.config.loader import load_billing_config
from dispenser_billing.config.logging_setup import configure_logging
from dispenser_billing.core.errors import BillingError
from dispenser_billing.core.service import DispenserService, build_service, http_status_for
from dispenser_billing.demo.seed_demo_data import seed_demo_data
from dispenser_billing.storage.db import initialize_schema
from dispenser_billing.storage.repository import SQLiteDispenserRepository

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def get_service(db_path: str, config_path: Optional[str] = None) -> DispenserService:
    """Build a service over the SQLite database at ``db_path``."""
    config = load_billing_config(config_path)
    return build_service(config, repository=SQLiteDispenserRepository(db_path))


def _settings(ctx: typer.Context) -> dict:
    return ctx.obj or {"db_path": None, "config_path": None}


def _service(ctx: typer.Context) -> DispenserService:
    settings = _settings(ctx)
    return get_service(settings["db_path"], settings["config_path"])


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(error: Exception) -> None:
    status = http_status_for(error)
    console.print(f"[red]Error ({status}):[/] {error}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="SQLite database file (defaults to storage.db_path from config)"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override the configured log level"
    ),
):
    """Dispenser Billing CLI."""
    try:
        settings = load_billing_config(config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    configure_logging(log_level or settings.logging.level, settings.logging.json)
    ctx.obj = {
        "config_path": config,
        "db_path": db or settings.storage.db_path,
    }
    if ctx.invoked_subcommand is None:
        console.print("Dispenser Billing - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the dispenser database."""
    try:
        initialize_schema(_settings(ctx)["db_path"])
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def register(
    ctx: typer.Context,
    flow_volume: float = typer.Option(
        ...,
        "--flow-volume",
        "-f",
        help="Volume dispensed per second while the tap is open"
    ),
):
    """Register a new dispenser."""
    try:
        _emit(_service(ctx).create_dispenser({"flowVolume": flow_volume}))
    except BillingError as e:
        _fail(e)


@app.command(name="open")
def open_tap(ctx: typer.Context, dispenser_id: str = typer.Argument(..., help="Dispenser id")):
    """Open the tap of a dispenser."""
    try:
        _emit(_service(ctx).update_status(dispenser_id, {"status": "open"}))
    except BillingError as e:
        _fail(e)


@app.command(name="close")
def close_tap(ctx: typer.Context, dispenser_id: str = typer.Argument(..., help="Dispenser id")):
    """Close the tap of a dispenser and report the revenue."""
    try:
        _emit(_service(ctx).update_status(dispenser_id, {"status": "close"}))
    except BillingError as e:
        _fail(e)


@app.command()
def summary(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table"),
):
    """Show usage count, duration and revenue for every dispenser."""
    rows = _service(ctx).summary()
    if as_json:
        _emit(rows)
        return
    if not rows:
        console.print("\n[bold yellow]No dispensers registered[/]\n")
        return

    table = Table(title="Dispenser Summary")
    table.add_column("Dispenser")
    table.add_column("Usages", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Revenue", justify="right")
    for row in rows:
        table.add_row(
            row["dispenser_id"],
            str(row["usage_count"]),
            row["total_duration"],
            row["total_revenue"],
        )
    console.print(table)


@app.command()
def spending(ctx: typer.Context, dispenser_id: str = typer.Argument(..., help="Dispenser id")):
    """Show every usage of a dispenser, billing open taps up to now."""
    try:
        _emit(_service(ctx).spending(dispenser_id))
    except BillingError as e:
        _fail(e)


@app.command(name="seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert a demo dispenser with historical usages."""
    dispenser = seed_demo_data(SQLiteDispenserRepository(_settings(ctx)["db_path"]))
    console.print(f"[green]✓[/] Demo dispenser {dispenser.id} inserted")


if __name__ == "__main__":
    app()
