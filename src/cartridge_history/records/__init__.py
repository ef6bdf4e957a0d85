"""History record model, position ordering and statement filtering."""

from .filter import DEFAULT_DDL_FILTER, StatementFilter
from .models import (
    HistoryRecord,
    OffsetMap,
    Position,
    SourceInfo,
    ValueTag,
    tag_of,
)
from .position import (
    FieldOrderComparator,
    HistoryRecordComparator,
    Ordering,
    compare_positions,
)

__all__ = [
    # Models
    "HistoryRecord",
    "OffsetMap",
    "Position",
    "SourceInfo",
    "ValueTag",
    "tag_of",
    # Ordering
    "Ordering",
    "HistoryRecordComparator",
    "FieldOrderComparator",
    "compare_positions",
    # Filtering
    "DEFAULT_DDL_FILTER",
    "StatementFilter",
]
