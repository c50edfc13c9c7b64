"""
Command-line interface for schemasync.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import IndexDefinition, SchemaSyncConfig, TableDefinition
from .database.connection import ConnectionConfig
from .database.facade import Database
from .exceptions import ConfigurationError, SchemaSyncError
from .schema.notifications import ConsoleReporter
from .schema.reconciler import CommitResult, ReconciliationStatus


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SchemaSyncError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
    return wrapper


@click.group()
@click.version_option(__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, debug):
    """schemasync: declarative schema reconciliation for relational databases."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


def _load_config(ctx: click.Context, path: str) -> SchemaSyncConfig:
    config = SchemaSyncConfig.from_yaml(path)
    if ctx.obj.get("debug"):
        config.logging.level = "DEBUG"
    config.logging.apply()
    return config


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="schemasync.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Write an example configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")

    try:
        sync_config = SchemaSyncConfig.from_yaml(config)
        sync_config.validate_config()
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(sync_config)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.pass_context
@handle_errors
def plan(ctx, config: str):
    """Show the schema changes a sync would make."""
    sync_config = _load_config(ctx, config)
    sync_config.validate_config()
    sync_config.session.dry_run = True

    result = asyncio.run(_run_sync(sync_config))
    _display_commit_result(result)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be done without making changes",
)
@click.pass_context
@handle_errors
def sync(ctx, config: str, dry_run: bool):
    """Reconcile the database schema with the declared tables."""
    sync_config = _load_config(ctx, config)
    sync_config.validate_config()

    if dry_run:
        sync_config.session.dry_run = True
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]")

    result = asyncio.run(_run_sync(sync_config))
    _display_commit_result(result)

    if result.status in (ReconciliationStatus.FAILED, ReconciliationStatus.PARTIAL):
        sys.exit(1)


async def _run_sync(config: SchemaSyncConfig) -> CommitResult:
    async with Database.from_config(config, [ConsoleReporter(console)]) as db:
        return await db.sync_tables(config.tables)


def _create_default_config() -> SchemaSyncConfig:
    """Create a default configuration with examples."""
    return SchemaSyncConfig(
        connection=ConnectionConfig(
            host="${POSTGRES_HOST}",
            database="${POSTGRES_DB}",
            user="${POSTGRES_USER}",
            password="${POSTGRES_PASSWORD}",
        ),
        tables=[
            TableDefinition(
                name="Page",
                fields={
                    "Title": "Varchar(255)",
                    "Content": "HTMLText",
                    "Status": "Enum('Draft,Published', 'Draft')",
                    "ParentID": "ForeignKey('Page')",
                },
                indexes={
                    "ParentID": True,
                    "TitleSearch": IndexDefinition(fields=["Title", "Content"], type="fulltext"),
                },
            ),
            TableDefinition(name="OldLog", obsolete=True),
        ],
    )


def _display_config_summary(config: SchemaSyncConfig):
    """Display a summary of the configuration."""
    console.print("\n[blue]Configuration Summary[/blue]")

    if config.connection:
        console.print(
            f"Database: {config.connection.host}:{config.connection.port}/"
            f"{config.connection.database} (schema {config.connection.schema_name})"
        )

    table = Table(title="Declared Tables")
    table.add_column("Table", style="cyan")
    table.add_column("Fields", style="magenta")
    table.add_column("Indexes", style="green")
    table.add_column("Obsolete", style="yellow")

    for definition in config.tables:
        table.add_row(
            definition.name,
            str(len(definition.fields)),
            str(len(definition.indexes)),
            "yes" if definition.obsolete else "",
        )

    console.print(table)


def _display_commit_result(result: CommitResult):
    """Display per-table outcomes of a schema update."""
    colours = {
        ReconciliationStatus.SUCCESS: "green",
        ReconciliationStatus.PARTIAL: "yellow",
        ReconciliationStatus.FAILED: "red",
        ReconciliationStatus.SKIPPED: "blue",
    }
    colour = colours[result.status]
    console.print(f"\n[{colour}]Schema update: {result.status.value}[/{colour}]")

    if not result.outcomes:
        console.print("No changes needed")
        return

    table = Table(title="Table Changes")
    table.add_column("Table", style="cyan")
    table.add_column("Change", style="magenta")
    table.add_column("Result")

    for outcome in result.outcomes:
        if outcome.error:
            status = f"[red]failed: {outcome.error}[/red]"
        elif outcome.skipped:
            status = "[blue]skipped (dry run)[/blue]"
        else:
            status = "[green]applied[/green]"
        table.add_row(outcome.table, outcome.change.describe(), status)

    console.print(table)
