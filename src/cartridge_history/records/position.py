"""Position ordering used to decide which history records belong to a recovery."""

from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from .models import HistoryRecord, OffsetMap, Position, SourceInfo


class Ordering(str, Enum):
    """Relation of one recorded position to another."""

    PRECEDES = "precedes"
    EQUAL = "equal"
    FOLLOWS = "follows"
    INCOMPARABLE = "incomparable"


def _ordering_of(left: Any, right: Any) -> Ordering:
    if left == right:
        return Ordering.EQUAL
    return Ordering.PRECEDES if left < right else Ordering.FOLLOWS


class HistoryRecordComparator:
    """Decides whether a history record lies at or before a recovery target.

    The base implementation compares the values of the keys that both
    positions share, in sorted key order; the first differing key decides.
    Positions whose shared keys are all equal compare EQUAL, so this
    comparator never reports INCOMPARABLE and gives a deterministic answer
    for every pair of well-formed positions.

    Subclasses override compare() and/or is_same_source() to handle source
    systems with richer position semantics, e.g. multi-source interleavings.
    """

    def compare(self, first: Position, second: Position) -> Ordering:
        """Order two positions.

        Args:
            first: Position of a recorded history entry
            second: Position to compare against (usually the recovery target)

        Returns:
            The Ordering of first relative to second
        """
        for key in sorted(set(first.keys()) & set(second.keys())):
            ordering = _ordering_of(first.tagged(key), second.tagged(key))
            if ordering is not Ordering.EQUAL:
                return ordering
        return Ordering.EQUAL

    def is_same_source(self, first: SourceInfo, second: SourceInfo) -> bool:
        return first == second

    def is_at_or_before(
        self,
        record: HistoryRecord,
        source: SourceInfo,
        position: Optional[Position],
    ) -> bool:
        """Check whether a record belongs to a recovery up to position.

        A position of None stands for "latest", so every record from the
        source qualifies.
        """
        if not self.is_same_source(record.source, source):
            return False
        if position is None:
            return True
        return self.compare(record.position, position) in (
            Ordering.PRECEDES,
            Ordering.EQUAL,
        )


class FieldOrderComparator(HistoryRecordComparator):
    """Compares positions on an explicit, ordered list of keys.

    Useful for sources whose coordinates have a natural priority such as
    ``["file", "pos"]`` for binlog-style logs. A position lacking any of the
    configured keys is INCOMPARABLE and therefore never replayed.
    """

    def __init__(self, fields: Sequence[str]):
        if not fields:
            raise ValueError("FieldOrderComparator requires at least one field")
        self.fields = list(fields)

    def compare(self, first: Position, second: Position) -> Ordering:
        for field in self.fields:
            if field not in first or field not in second:
                return Ordering.INCOMPARABLE
            ordering = _ordering_of(first.tagged(field), second.tagged(field))
            if ordering is not Ordering.EQUAL:
                return ordering
        return Ordering.EQUAL


def compare_positions(
    first: Union[OffsetMap, Mapping[str, Any]],
    second: Union[OffsetMap, Mapping[str, Any]],
    comparator: Optional[HistoryRecordComparator] = None,
) -> Ordering:
    """Order two plain position mappings with the given (or base) comparator."""
    comparator = comparator or HistoryRecordComparator()
    return comparator.compare(Position.of(first), Position.of(second))


__all__ = [
    "Ordering",
    "HistoryRecordComparator",
    "FieldOrderComparator",
    "compare_positions",
]
