"""Cartridge History - durable schema history and recovery for CDC pipelines.

Every DDL statement observed in a change stream is recorded together with the
source and position it was read at. Replaying that log up to any recorded
position rebuilds the schema model that was in effect there.
"""

__version__ = "0.1.0"

from .core.config import HistoryConfig
from .core.errors import (
    ConfigurationError,
    DdlParseError,
    HistoryError,
    LifecycleError,
    ParseError,
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
)
from .core.history import HistoryController, HistoryState
from .records import (
    FieldOrderComparator,
    HistoryRecord,
    HistoryRecordComparator,
    Ordering,
    Position,
    SourceInfo,
    StatementFilter,
)
from .recovery import HistoryListener, NoopHistoryListener, RecoveryResult
from .schema import DdlParser, Table, TableChanges, TableId, Tables
from .storage import HistoryStore, StoreFactory

__all__ = [
    "HistoryController",
    "HistoryState",
    "HistoryConfig",
    "HistoryRecord",
    "SourceInfo",
    "Position",
    "Ordering",
    "HistoryRecordComparator",
    "FieldOrderComparator",
    "StatementFilter",
    "HistoryListener",
    "NoopHistoryListener",
    "RecoveryResult",
    "DdlParser",
    "Table",
    "TableChanges",
    "TableId",
    "Tables",
    "HistoryStore",
    "StoreFactory",
    "HistoryError",
    "ConfigurationError",
    "LifecycleError",
    "StoreWriteError",
    "StoreReadError",
    "StoreUnavailableError",
    "ParseError",
    "DdlParseError",
]
