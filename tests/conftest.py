"""Test configuration for cartridge-history."""

import re
from typing import Optional

import pytest

from cartridge_history.core.errors import ParseError
from cartridge_history.schema.changes import TableChanges
from cartridge_history.schema.tables import Column, Table, TableId, Tables

_CREATE = re.compile(r"CREATE TABLE\s+([\w.]+)\s*\((.*)\)", re.IGNORECASE | re.DOTALL)
_ADD_COLUMN = re.compile(r"ALTER TABLE\s+([\w.]+)\s+ADD COLUMN\s+(\w+)\s+(\w+)", re.IGNORECASE)
_DROP_COLUMN = re.compile(r"ALTER TABLE\s+([\w.]+)\s+DROP COLUMN\s+(\w+)", re.IGNORECASE)
_DROP_TABLE = re.compile(r"DROP TABLE\s+([\w.]+)", re.IGNORECASE)
_PRIMARY_KEY = re.compile(r"PRIMARY KEY\s*\(([^)]*)\)", re.IGNORECASE)


class SimpleDdlParser:
    """Tiny parser understanding a handful of statement shapes.

    Statements separated by ';' are applied one after another, so a batch
    whose second statement is garbage leaves the first one applied.
    """

    def __init__(self):
        self.statements: list[str] = []

    def apply(
        self,
        statement: str,
        tables: Tables,
        database_name: Optional[str] = None,
        schema_name: Optional[str] = None,
    ) -> TableChanges:
        changes = TableChanges()
        for part in (s.strip() for s in statement.split(";")):
            if part:
                self.statements.append(part)
                self._apply_one(part, tables, database_name, changes)
        return changes

    def _table_id(self, name: str, database_name: Optional[str]) -> TableId:
        table_id = TableId.parse(name)
        if table_id.catalog is None and database_name:
            return TableId(database_name, None, table_id.table)
        return table_id

    def _apply_one(self, statement, tables, database_name, changes):
        match = _CREATE.fullmatch(statement)
        if match:
            table_id = self._table_id(match.group(1), database_name)
            body = match.group(2)
            primary_key = _PRIMARY_KEY.search(body)
            body = _PRIMARY_KEY.sub("", body)
            table = Table(
                table_id,
                primary_key_columns=tuple(
                    c.strip() for c in primary_key.group(1).split(",")
                ) if primary_key else (),
            )
            for definition in (d.strip() for d in body.split(",")):
                if definition:
                    name, type_name = definition.split()[:2]
                    table = table.with_column(Column(name, type_name.upper()))
            tables.overwrite_table(table)
            changes.create(table)
            return

        match = _ADD_COLUMN.fullmatch(statement)
        if match:
            table = self._existing(match.group(1), database_name, tables)
            table = table.with_column(Column(match.group(2), match.group(3).upper()))
            tables.overwrite_table(table)
            changes.alter(table)
            return

        match = _DROP_COLUMN.fullmatch(statement)
        if match:
            table = self._existing(match.group(1), database_name, tables)
            table = table.without_column(match.group(2))
            tables.overwrite_table(table)
            changes.alter(table)
            return

        match = _DROP_TABLE.fullmatch(statement)
        if match:
            table_id = self._table_id(match.group(1), database_name)
            tables.remove_table(table_id)
            changes.drop(table_id)
            return

        raise ParseError(f"Unsupported statement: {statement}")

    def _existing(self, name, database_name, tables) -> Table:
        table = tables.for_table(self._table_id(name, database_name))
        if table is None:
            raise ParseError(f"Unknown table: {name}")
        return table


@pytest.fixture
def parser():
    """Parser for the statement shapes used in tests."""
    return SimpleDdlParser()


@pytest.fixture
def source():
    return {"server": "mysql-1"}


@pytest.fixture
def sample_config_file(tmp_path):
    """Create a sample configuration file for testing."""
    config_content = f"""
name: "inventory-history"

skip_unparseable_ddl: false
store_only_monitored_tables_ddl: false

storage:
  type: file
  path: "{tmp_path / 'history' / 'schema-history.jsonl'}"
  initialize_on_start: true

monitoring:
  prometheus:
    enabled: false
  log_level: "DEBUG"
"""

    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content)
    return config_file
