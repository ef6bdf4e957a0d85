"""Schema recovery by replaying stored history.

The engine scans the store in append order and replays every record from
the requested source whose position lies at or before the recovery target.
Records carrying captured table changes are applied directly; all others are
re-parsed with the caller's DDL parser.

Storage order is not assumed to follow position order, so by default every
record is examined. When positions are known to be monotonic in storage
order the scan stops at the first record past the target.
"""

import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import structlog

from ..core.errors import DdlParseError, ParseError
from ..records.models import HistoryRecord, Position, SourceInfo
from ..records.position import HistoryRecordComparator, Ordering
from ..schema.changes import TableChanges
from ..schema.parser import DdlParser
from ..schema.tables import Tables
from ..storage.base import HistoryStore
from .listener import HistoryListener, NoopHistoryListener, notify

logger = structlog.get_logger(__name__)


@dataclass
class RecoveryResult:
    """Outcome of one recovery pass."""

    scanned: int = 0
    applied: int = 0
    skipped_unparseable: int = 0
    excluded: int = 0
    stopped_early: bool = False
    duration_seconds: float = 0.0


class RecoveryEngine:
    """Rebuilds a schema model from the records in a history store."""

    def __init__(
        self,
        store: HistoryStore,
        comparator: Optional[HistoryRecordComparator] = None,
        listener: Optional[HistoryListener] = None,
        skip_unparseable_ddl: bool = False,
        use_catalog_before_schema: bool = True,
        assume_monotonic_positions: bool = False,
        history_name: str = "default",
    ):
        """Initialize the recovery engine.

        Args:
            store: History store to read from
            comparator: Decides which records belong to a recovery
            listener: Receives recovery notifications
            skip_unparseable_ddl: Skip records the parser rejects instead of failing
            use_catalog_before_schema: Read two-part table names in captured
                table changes as catalog.table rather than schema.table
            assume_monotonic_positions: Stop scanning at the first record that
                follows the target
            history_name: Name used in logs
        """
        self.store = store
        self.comparator = comparator or HistoryRecordComparator()
        self.listener = listener or NoopHistoryListener()
        self.skip_unparseable_ddl = skip_unparseable_ddl
        self.use_catalog_before_schema = use_catalog_before_schema
        self.assume_monotonic_positions = assume_monotonic_positions
        self.logger = logger.bind(history=history_name)

    async def recover(
        self,
        source: Union[SourceInfo, Mapping[str, Any]],
        position: Union[Position, Mapping[str, Any], None],
        schema: Tables,
        parser: DdlParser,
    ) -> RecoveryResult:
        """Recover schema to its state as of position.

        Args:
            source: Source whose history should be replayed
            position: Recovery target; None recovers the latest state
            schema: Schema model to apply history to, mutated in place
            parser: Parser used for records without captured table changes

        Returns:
            Counts describing the recovery

        Raises:
            DdlParseError: If a statement cannot be parsed and skipping is disabled
        """
        source = SourceInfo.of(source)
        target = Position.of(position) if position is not None else None
        result = RecoveryResult()
        started_at = time.monotonic()

        self.logger.info(
            "Recovering schema from history",
            source=str(source),
            position=str(target) if target is not None else "latest",
        )
        notify(self.listener, "recovery_started")

        try:
            async with aclosing(self.store.iterate()) as records:
                async for record in records:
                    result.scanned += 1

                    if not self.comparator.is_at_or_before(record, source, target):
                        result.excluded += 1
                        if self._past_target(record, source, target):
                            result.stopped_early = True
                            break
                        continue

                    notify(self.listener, "on_change_from_history", record)
                    if self._apply(record, schema, parser):
                        result.applied += 1
                    else:
                        result.skipped_unparseable += 1
        finally:
            result.duration_seconds = time.monotonic() - started_at
            notify(self.listener, "recovery_stopped")

        self.logger.info(
            "Schema recovered",
            scanned=result.scanned,
            applied=result.applied,
            skipped=result.skipped_unparseable,
            tables=len(schema),
        )
        return result

    def _past_target(
        self, record: HistoryRecord, source: SourceInfo, target: Optional[Position]
    ) -> bool:
        """Whether the monotonic fast path allows stopping at this record."""
        if not self.assume_monotonic_positions or target is None:
            return False
        if not self.comparator.is_same_source(record.source, source):
            return False
        return self.comparator.compare(record.position, target) is Ordering.FOLLOWS

    def _apply(self, record: HistoryRecord, schema: Tables, parser: DdlParser) -> bool:
        """Apply one record; returns False if it was skipped as unparseable."""
        if not record.has_table_changes and record.ddl is None:
            return True

        snapshot = schema.clone() if self.skip_unparseable_ddl else None
        try:
            if record.has_table_changes:
                TableChanges.from_documents(
                    record.table_changes, self.use_catalog_before_schema
                ).apply_to(schema)
            else:
                parser.apply(
                    record.ddl,
                    schema,
                    database_name=record.database_name,
                    schema_name=record.schema_name,
                )
        except ParseError as e:
            if snapshot is None:
                raise DdlParseError(record.position, record.ddl, str(e)) from e

            schema.restore(snapshot)
            self.logger.warning(
                "Ignoring unparseable DDL statement",
                ddl=record.ddl,
                position=str(record.position),
                error=str(e),
            )
            notify(self.listener, "on_unparseable_statement", record, e)
            return False

        return True


__all__ = ["RecoveryEngine", "RecoveryResult"]
