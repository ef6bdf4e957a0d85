"""PostgreSQL history store.

Implements durable schema history on PostgreSQL including:
- One row per record, appended with a single INSERT statement
- Several named histories sharing a table, partitioned by history_name
- Snapshot iteration bounded by the highest id visible when a pass starts
- Connection pooling with asyncpg
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import asyncpg
import structlog
from asyncpg import Connection, Pool
from asyncpg.exceptions import InterfaceError, PostgresError

from ..core.errors import StoreReadError, StoreUnavailableError, StoreWriteError
from ..records.models import HistoryRecord
from .base import HistoryStore
from .factory import register_history_store
from .sql import (
    get_exists_sql,
    get_history_table_sql,
    get_insert_sql,
    get_page_sql,
    get_snapshot_sql,
    get_storage_exists_sql,
)

logger = structlog.get_logger(__name__)

_DATABASE_ERRORS = (PostgresError, InterfaceError, OSError)


def _json_value(value: Any) -> Any:
    """JSONB columns come back as text unless a codec is registered."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


@register_history_store("postgresql")
class PostgreSQLHistoryStore(HistoryStore):
    """History store backed by a PostgreSQL table."""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        history_name: str = "default",
        metadata_schema: str = "cartridge_history",
        table_name: str = "schema_history",
        min_connections: int = 1,
        max_connections: int = 5,
        command_timeout: float = 60.0,
        page_size: int = 500,
        pool: Optional[Pool] = None,
        **kwargs,
    ):
        """Initialize the PostgreSQL store.

        Args:
            connection_string: PostgreSQL DSN; unused when pool is given
            history_name: Logical name partitioning rows in the history table
            metadata_schema: Schema holding the history table
            table_name: Name of the history table
            min_connections: Minimum pool size
            max_connections: Maximum pool size
            command_timeout: Per-statement timeout in seconds
            page_size: Rows fetched per round trip while iterating
            pool: Existing connection pool to use instead of creating one
        """
        super().__init__(history_name, **kwargs)
        if connection_string is None and pool is None:
            raise ValueError("PostgreSQLHistoryStore requires a connection string or pool")

        self.connection_string = connection_string
        self.metadata_schema = metadata_schema
        self.table_name = table_name
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.command_timeout = command_timeout
        self.page_size = page_size
        self.pool = pool
        self._owns_pool = pool is None

        self.logger = logger.bind(
            history=history_name, table=f"{metadata_schema}.{table_name}"
        )

    @asynccontextmanager
    async def _connection(self):
        """Acquire a pooled connection, or a one-off one before start()."""
        if self.pool is not None:
            async with self.pool.acquire() as conn:
                yield conn
            return

        conn: Connection = await asyncpg.connect(
            self.connection_string, command_timeout=self.command_timeout
        )
        try:
            yield conn
        finally:
            await conn.close()

    async def start(self) -> None:
        if self.started:
            return

        try:
            if self.pool is None:
                self.logger.info(
                    "Establishing PostgreSQL connection pool",
                    min_connections=self.min_connections,
                    max_connections=self.max_connections,
                )
                self.pool = await asyncpg.create_pool(
                    self.connection_string,
                    min_size=self.min_connections,
                    max_size=self.max_connections,
                    command_timeout=self.command_timeout,
                )
            provisioned = await self.storage_exists()
        except _DATABASE_ERRORS as e:
            await self._release_pool()
            raise StoreUnavailableError(f"Cannot open PostgreSQL history: {e}") from e

        if not provisioned:
            await self._release_pool()
            raise StoreUnavailableError(
                f"History table {self.metadata_schema}.{self.table_name} does not exist"
            )

        self.started = True
        self.logger.info("PostgreSQL history store started")

    async def stop(self) -> None:
        self.started = False
        await self._release_pool()

    async def _release_pool(self) -> None:
        if self.pool is None or not self._owns_pool:
            return
        pool, self.pool = self.pool, None
        await pool.close()
        self.logger.info("PostgreSQL connection pool closed")

    async def append(self, record: HistoryRecord) -> None:
        if not self.started:
            raise StoreWriteError("PostgreSQL history store is not open")

        document = record.to_document()
        table_changes = document.get("tableChanges")

        try:
            async with self._connection() as conn:
                await conn.execute(
                    get_insert_sql(self.metadata_schema, self.table_name),
                    self.history_name,
                    json.dumps(document["source"]),
                    json.dumps(document["position"]),
                    record.database_name,
                    record.schema_name,
                    record.ddl,
                    json.dumps(table_changes) if table_changes is not None else None,
                    record.recorded_at,
                )
        except _DATABASE_ERRORS as e:
            raise StoreWriteError(f"Failed to append history record: {e}") from e

        self.logger.debug("Appended history record", position=str(record.position))

    async def iterate(self) -> AsyncIterator[HistoryRecord]:
        async with self._connection() as conn:
            upper = await conn.fetchval(
                get_snapshot_sql(self.metadata_schema, self.table_name),
                self.history_name,
            )
            last_id = 0

            while True:
                rows = await conn.fetch(
                    get_page_sql(self.metadata_schema, self.table_name),
                    self.history_name,
                    last_id,
                    upper,
                    self.page_size,
                )
                if not rows:
                    break

                for row in rows:
                    yield self._record_from_row(row)

                last_id = rows[-1]["id"]

    def _record_from_row(self, row) -> HistoryRecord:
        try:
            return HistoryRecord(
                source=_json_value(row["source"]),
                position=_json_value(row["position"]),
                database_name=row["database_name"],
                schema_name=row["schema_name"],
                ddl=row["ddl"],
                table_changes=_json_value(row["table_changes"]),
                recorded_at=row["recorded_at"],
            )
        except ValueError as e:
            raise StoreReadError(f"Corrupt history row {row['id']}") from e

    async def exists(self) -> bool:
        if not await self.storage_exists():
            return False
        async with self._connection() as conn:
            return bool(
                await conn.fetchval(
                    get_exists_sql(self.metadata_schema, self.table_name),
                    self.history_name,
                )
            )

    async def storage_exists(self) -> bool:
        async with self._connection() as conn:
            return bool(
                await conn.fetchval(
                    get_storage_exists_sql(), self.metadata_schema, self.table_name
                )
            )

    async def initialize_storage(self) -> None:
        self.logger.info("Initializing PostgreSQL history storage")
        try:
            async with self._connection() as conn:
                async with conn.transaction():
                    for sql in get_history_table_sql(self.metadata_schema, self.table_name):
                        await conn.execute(sql)
        except _DATABASE_ERRORS as e:
            raise StoreUnavailableError(
                f"Cannot provision PostgreSQL history storage: {e}"
            ) from e


__all__ = ["PostgreSQLHistoryStore"]
