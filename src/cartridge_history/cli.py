"""Command-line interface for cartridge-history."""

import asyncio
import importlib
import json
import sys
from contextlib import aclosing
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from .core.config import HistoryConfig
from .core.history import HistoryController
from .monitoring.logging import configure_logging
from .schema.parser import DdlParser
from .schema.tables import Tables

console = Console()

CONFIG_OPTION = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to configuration file",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="cartridge-history")
def cli():
    """Cartridge-History: schema history for CDC pipelines

    Records every DDL statement seen in a change stream and rebuilds the
    schema that was in effect at any recorded position.
    """
    pass


@cli.command()
def init():
    """Initialize a new cartridge-history configuration file."""

    config_template = """# Cartridge-History Configuration
name: "inventory-history"

# Skip recorded DDL that cannot be parsed during recovery
skip_unparseable_ddl: false

# Only record DDL touching monitored tables
store_only_monitored_tables_ddl: false
table_whitelist: null  # e.g. "inventory.orders,inventory.customers"
table_blacklist: null

# Positions are recorded in increasing order for every source
assume_monotonic_positions: false

# History storage
storage:
  type: file  # memory, file, postgresql
  path: "./schema-history.jsonl"
  # connection_string: "postgresql://localhost:5432/warehouse"
  # metadata_schema: "cartridge_history"
  # table_name: "schema_history"
  initialize_on_start: true

# Monitoring configuration
monitoring:
  prometheus:
    enabled: false
    port: 8081
    path: "/metrics"
  log_level: "INFO"
  structured_logging: true
"""

    config_file = Path("cartridge-history-config.yaml")

    if config_file.exists():
        console.print(
            f"[yellow]Configuration file already exists: {config_file}[/yellow]"
        )
        if not click.confirm("Overwrite existing file?"):
            return

    config_file.write_text(config_template)
    console.print(f"[green]Created configuration file: {config_file}[/green]")
    console.print("[blue]Edit the file with your storage settings.[/blue]")


@cli.command()
@CONFIG_OPTION
def validate(config: Path):
    """Validate configuration file."""

    try:
        console.print(f"[blue]Validating configuration: {config}[/blue]")
        history_config = HistoryConfig.from_file(config)

        console.print("[green]✓ Configuration is valid[/green]")
        _display_config_summary(history_config)

    except Exception as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        sys.exit(1)


@cli.command("init-storage")
@CONFIG_OPTION
def init_storage(config: Path):
    """Provision the storage configured for the history."""

    async def _init(controller: HistoryController):
        if await controller.storage_exists():
            console.print("[yellow]History storage already exists[/yellow]")
            return
        await controller.initialize_storage()
        console.print("[green]History storage initialized[/green]")

    _run(config, _init, start=False)


@cli.command()
@CONFIG_OPTION
def status(config: Path):
    """Show whether storage is provisioned and how many records it holds."""

    async def _status(controller: HistoryController):
        table = Table(title="History Status")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="magenta")
        table.add_row("History", controller.name)
        table.add_row("Storage Type", controller.config.storage.type)

        provisioned = await controller.storage_exists()
        table.add_row("Storage Exists", "Yes" if provisioned else "No")
        populated = await controller.exists()
        table.add_row("History Populated", "Yes" if populated else "No")
        if provisioned:
            await controller.store.start()
            try:
                table.add_row("Records", str(await controller.store.count()))
            finally:
                await controller.store.stop()

        console.print(table)

    _run(config, _status, start=False)


@cli.command()
@CONFIG_OPTION
@click.option("--limit", "-n", type=int, default=None, help="Show at most N records")
@click.option("--as-json", is_flag=True, help="Print stored documents as JSON lines")
def show(config: Path, limit: Optional[int], as_json: bool):
    """List recorded history in storage order."""

    async def _show(controller: HistoryController):
        table = Table(title=f"Schema History: {controller.name}")
        table.add_column("#", style="dim")
        table.add_column("Source", style="cyan")
        table.add_column("Position", style="green")
        table.add_column("Database", style="yellow")
        table.add_column("DDL", style="magenta")

        shown = 0
        async with aclosing(controller.store.iterate()) as records:
            async for record in records:
                if limit is not None and shown >= limit:
                    break
                shown += 1
                if as_json:
                    click.echo(record.to_json())
                    continue
                table.add_row(
                    str(shown),
                    str(record.source),
                    str(record.position),
                    record.database_name or "",
                    record.ddl or f"<{len(record.table_changes or [])} table changes>",
                )

        if not as_json:
            console.print(table)

    _run(config, _show)


@cli.command()
@CONFIG_OPTION
@click.option("--source", required=True, help="Source information as a JSON object")
@click.option("--position", required=True, help="Position as a JSON object")
@click.option("--database", help="Database the DDL was applied to")
@click.option("--schema-name", help="Schema the DDL was applied to")
@click.option("--ddl", required=True, help="DDL statement to record")
def record(
    config: Path,
    source: str,
    position: str,
    database: Optional[str],
    schema_name: Optional[str],
    ddl: str,
):
    """Record one DDL statement."""

    async def _record(controller: HistoryController):
        stored = await controller.record(
            _parse_json_object(source, "source"),
            _parse_json_object(position, "position"),
            database,
            ddl,
            schema_name=schema_name,
        )
        if stored is None:
            console.print("[yellow]Statement was filtered out and not recorded[/yellow]")
        else:
            console.print(f"[green]Recorded DDL at position {stored.position}[/green]")

    _run(config, _record)


@cli.command()
@CONFIG_OPTION
@click.option("--source", required=True, help="Source information as a JSON object")
@click.option("--position", help="Position as a JSON object (default: latest)")
@click.option(
    "--parser",
    "parser_ref",
    required=True,
    help="DDL parser to use, as 'module:attribute'",
)
def recover(config: Path, source: str, position: Optional[str], parser_ref: str):
    """Rebuild the schema in effect at a position and print it."""

    async def _recover(controller: HistoryController):
        parser = load_parser(parser_ref)
        schema = Tables()
        result = await controller.recover(
            _parse_json_object(source, "source"),
            _parse_json_object(position, "position") if position else None,
            schema,
            parser,
        )

        table = Table(title="Recovered Schema")
        table.add_column("Table", style="cyan")
        table.add_column("Columns", style="green")
        table.add_column("Primary Key", style="yellow")
        for recovered in schema:
            table.add_row(
                recovered.id.identifier,
                ", ".join(recovered.column_names),
                ", ".join(recovered.primary_key_columns),
            )
        console.print(table)
        console.print(
            f"[blue]Applied {result.applied} of {result.scanned} records "
            f"({result.skipped_unparseable} skipped)[/blue]"
        )

    _run(config, _recover)


def load_parser(reference: str) -> DdlParser:
    """Import a parser given as ``module:attribute``.

    Classes are instantiated without arguments; anything else is used as is.
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(
            f"expected 'module:attribute', got {reference!r}", param_hint="--parser"
        )

    target = getattr(importlib.import_module(module_name), attribute)
    parser = target() if isinstance(target, type) else target
    if not isinstance(parser, DdlParser):
        raise click.BadParameter(
            f"{reference} does not provide an apply() method", param_hint="--parser"
        )
    return parser


def _parse_json_object(value: str, name: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint=f"--{name}") from e
    if not isinstance(parsed, dict):
        raise click.BadParameter("expected a JSON object", param_hint=f"--{name}")
    return parsed


def _run(config: Path, action, start: bool = True):
    """Load configuration, then run action against a configured controller."""

    try:
        history_config = HistoryConfig.from_file(config)
    except Exception as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        sys.exit(1)

    configure_logging(history_config.monitoring)

    async def _execute():
        controller = HistoryController()
        controller.configure(history_config)
        if not start:
            await action(controller)
            return
        async with controller:
            await action(controller)

    try:
        asyncio.run(_execute())
    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def _display_config_summary(config: HistoryConfig):
    """Display a summary of the configuration."""

    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("History", config.history_name)
    table.add_row("Storage Type", config.storage.type)
    if config.storage.path:
        table.add_row("Storage Path", str(config.storage.path))
    if config.storage.type == "postgresql":
        table.add_row(
            "History Table", f"{config.storage.metadata_schema}.{config.storage.table_name}"
        )
    table.add_row("DDL Filters", str(len(config.ddl_filter)))
    table.add_row("Skip Unparseable DDL", "Yes" if config.skip_unparseable_ddl else "No")
    table.add_row(
        "Monitored Tables Only", "Yes" if config.store_only_monitored_tables_ddl else "No"
    )
    table.add_row(
        "Prometheus", "Enabled" if config.monitoring.prometheus.enabled else "Disabled"
    )

    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
