"""Lifecycle coordinator for a schema history instance."""

import time
from enum import Enum
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from ..monitoring.metrics import MetricsCollector
from ..records.filter import StatementFilter
from ..records.models import HistoryRecord, Position, SourceInfo
from ..records.position import HistoryRecordComparator
from ..recovery.engine import RecoveryEngine, RecoveryResult
from ..recovery.listener import HistoryListener, NoopHistoryListener, notify
from ..schema.changes import TableChanges
from ..schema.parser import DdlParser
from ..schema.tables import Tables
from ..storage.base import HistoryStore
from ..storage.factory import StoreFactory
from .config import HistoryConfig
from .errors import ConfigurationError, LifecycleError, StoreWriteError

logger = structlog.get_logger(__name__)

OffsetInput = Union[SourceInfo, Position, Mapping[str, Any]]


class HistoryState(str, Enum):
    """Lifecycle states of a history controller."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    STARTED = "started"
    STOPPED = "stopped"


class HistoryController:
    """Records DDL into a history store and recovers schemas from it.

    Lifecycle: configure() -> start() -> (record() | recover())* -> stop().
    The controller owns the store, statement filter, comparator and listener
    of one history; nothing is shared between instances.
    """

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        store_factory: Optional[StoreFactory] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize an unconfigured controller.

        Args:
            store: Store to use instead of one built from configuration
            store_factory: Factory used to build the store from configuration
            metrics: Metrics collector; one is created on configure() if None
        """
        self.store = store
        self.store_factory = store_factory or StoreFactory()
        self.metrics = metrics
        self.config: Optional[HistoryConfig] = None
        self.comparator = HistoryRecordComparator()
        self.listener: HistoryListener = NoopHistoryListener()
        self.statement_filter = StatementFilter()
        self.use_catalog_before_schema = True
        self.state = HistoryState.UNCONFIGURED
        self._store_injected = store is not None
        self.logger = logger

    @property
    def name(self) -> str:
        return self.config.history_name if self.config else "default"

    def configure(
        self,
        config: Union[HistoryConfig, Mapping[str, Any]],
        comparator: Optional[HistoryRecordComparator] = None,
        listener: Optional[HistoryListener] = None,
        use_catalog_before_schema: bool = True,
    ) -> None:
        """Configure this history.

        Args:
            config: Configuration model or flat mapping of history options
            comparator: Comparator used during recovery; the base
                HistoryRecordComparator when None
            listener: Listener for history events; a no-op listener when None
            use_catalog_before_schema: Whether two-part table names are
                catalog.table (True) or schema.table (False)

        Raises:
            ConfigurationError: If the options are invalid
            LifecycleError: If the history is running
        """
        if self.state is HistoryState.STARTED:
            raise LifecycleError("configure", self.state.value)

        try:
            if not isinstance(config, HistoryConfig):
                config = HistoryConfig.from_options(config)
            store = self.store
            if not self._store_injected:
                store = self.store_factory.create_store(config.storage, config.history_name)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid history configuration: {e}") from e

        self.config = config
        self.store = store
        self.comparator = comparator or HistoryRecordComparator()
        self.listener = listener or NoopHistoryListener()
        self.statement_filter = StatementFilter(config.ddl_filter)
        self.use_catalog_before_schema = use_catalog_before_schema
        if self.metrics is None:
            self.metrics = MetricsCollector(config.monitoring.prometheus)

        self.logger = logger.bind(history=config.history_name)
        self.state = HistoryState.CONFIGURED
        self.logger.info(
            "Configured schema history",
            storage=config.storage.type,
            ddl_filters=len(self.statement_filter),
            skip_unparseable_ddl=config.skip_unparseable_ddl,
        )

    async def start(self) -> None:
        """Open the history store.

        Raises:
            LifecycleError: If not configured, or already started
            StoreUnavailableError: If the store cannot be opened
        """
        if self.state not in (HistoryState.CONFIGURED, HistoryState.STOPPED):
            raise LifecycleError("start", self.state.value)

        self.logger.info("Starting schema history")

        if self.config.storage.initialize_on_start:
            await self.store.initialize_storage()

        await self.store.start()

        if self.config.monitoring.prometheus.enabled:
            try:
                await self.metrics.start_server()
            except Exception:
                await self.store.stop()
                raise

        self.state = HistoryState.STARTED
        notify(self.listener, "started")

    async def stop(self) -> None:
        """Release the history store. Safe to call repeatedly; never raises."""
        if self.state is not HistoryState.STARTED:
            return

        self.logger.info("Stopping schema history")
        self.state = HistoryState.STOPPED

        try:
            await self.store.stop()
        except Exception as e:
            self.logger.error("Failed to release history store", error=str(e))

        try:
            await self.metrics.stop_server()
        except Exception as e:
            self.logger.error("Failed to stop metrics server", error=str(e))

        notify(self.listener, "stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def record(
        self,
        source: OffsetInput,
        position: OffsetInput,
        database_name: Optional[str],
        ddl: Optional[str],
        schema_name: Optional[str] = None,
        table_changes: Optional[TableChanges] = None,
    ) -> Optional[HistoryRecord]:
        """Record a schema change.

        Args:
            source: Information about the source database; may not be None
            position: Point in the change stream where the DDL was applied;
                may not be None
            database_name: Database whose schema changed; may be None
            ddl: DDL text; may only be None when table_changes is given
            schema_name: Schema whose tables changed; may be None
            table_changes: Parsed changes produced by the DDL

        Returns:
            The appended record, or None if the statement was filtered out

        Raises:
            LifecycleError: If the history is not started
            StoreWriteError: If the record could not be persisted
        """
        self._require_started("record")

        if ddl is None and table_changes is None:
            raise ValueError("ddl may not be None")

        source = SourceInfo.of(source)
        position = Position.of(position)

        pattern = self.statement_filter.matching_pattern(ddl)
        if pattern is not None:
            self.logger.info("DDL statement filtered out", ddl=ddl, pattern=pattern)
            self.metrics.record_filtered(self.name, "ddl_filter")
            return None

        if not self._touches_monitored_table(table_changes):
            self.logger.debug("DDL statement does not touch a monitored table", ddl=ddl)
            self.metrics.record_filtered(self.name, "unmonitored_table")
            return None

        record = HistoryRecord(
            source=source,
            position=position,
            database_name=database_name,
            schema_name=schema_name,
            ddl=ddl,
            table_changes=table_changes.to_documents() if table_changes is not None else None,
        )

        try:
            await self.store.append(record)
        except StoreWriteError:
            self.metrics.record_failure(self.name)
            raise

        self.metrics.record_appended(self.name)
        notify(self.listener, "on_change_applied", record)
        return record

    def _touches_monitored_table(self, table_changes: Optional[TableChanges]) -> bool:
        """Records without table changes cannot be classified and are kept."""
        if not self.config.store_only_monitored_tables_ddl or table_changes is None:
            return True
        return any(
            self.config.is_table_monitored(table_id.identifier)
            for table_id in table_changes.table_ids()
        )

    async def recover(
        self,
        source: OffsetInput,
        position: Optional[OffsetInput],
        schema: Tables,
        parser: DdlParser,
    ) -> RecoveryResult:
        """Recover schema to a known point in its history.

        Recovering to a position later than anything recorded yields the
        latest known state; a position of None does so explicitly.

        Raises:
            LifecycleError: If the history is not started
            DdlParseError: If a statement cannot be parsed and skipping is disabled
        """
        self._require_started("recover")

        if source is None:
            raise ValueError("source may not be None")

        engine = RecoveryEngine(
            self.store,
            comparator=self.comparator,
            listener=self.listener,
            skip_unparseable_ddl=self.config.skip_unparseable_ddl,
            use_catalog_before_schema=self.use_catalog_before_schema,
            assume_monotonic_positions=self.config.assume_monotonic_positions,
            history_name=self.name,
        )

        started_at = time.monotonic()
        result = await engine.recover(source, position, schema, parser)
        self.metrics.record_recovery(
            self.name,
            result.applied,
            result.skipped_unparseable,
            time.monotonic() - started_at,
        )
        return result

    async def exists(self) -> bool:
        """Determine whether any history has been recorded."""
        self._require_configured("check history")
        return await self.store.exists()

    async def storage_exists(self) -> bool:
        """Determine whether the underlying storage has been provisioned."""
        self._require_configured("check storage")
        return await self.store.storage_exists()

    async def initialize_storage(self) -> None:
        """Provision permanent storage for the history."""
        self._require_configured("initialize storage")
        await self.store.initialize_storage()

    def _require_started(self, operation: str) -> None:
        if self.state is not HistoryState.STARTED:
            raise LifecycleError(operation, self.state.value)

    def _require_configured(self, operation: str) -> None:
        if self.state is HistoryState.UNCONFIGURED:
            raise LifecycleError(operation, self.state.value)


__all__ = ["HistoryController", "HistoryState"]
