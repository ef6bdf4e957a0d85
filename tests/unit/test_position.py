"""Tests for position ordering and record selection."""

import pytest

from cartridge_history.records.models import HistoryRecord, Position, SourceInfo
from cartridge_history.records.position import (
    FieldOrderComparator,
    HistoryRecordComparator,
    Ordering,
    compare_positions,
)


def _record(source, position, ddl="CREATE TABLE t (id INT)"):
    return HistoryRecord(source=source, position=position, ddl=ddl)


class TestHistoryRecordComparator:
    """Test the base comparator."""

    @pytest.mark.parametrize(
        "first,second,expected",
        [
            ({"pos": 1}, {"pos": 2}, Ordering.PRECEDES),
            ({"pos": 2}, {"pos": 2}, Ordering.EQUAL),
            ({"pos": 3}, {"pos": 2}, Ordering.FOLLOWS),
            ({"file": "bin.001", "pos": 900}, {"file": "bin.002", "pos": 4}, Ordering.PRECEDES),
            ({"lsn": 10, "txId": 7}, {"lsn": 10}, Ordering.EQUAL),
            ({"a": None}, {"a": 0}, Ordering.PRECEDES),
            ({"a": True}, {"a": 1}, Ordering.PRECEDES),
            ({"a": 99}, {"a": "1"}, Ordering.PRECEDES),
            ({"a": 1.5}, {"a": 1}, Ordering.FOLLOWS),
        ],
    )
    def test_compare(self, first, second, expected):
        assert compare_positions(first, second) is expected

    def test_disjoint_positions_compare_equal(self):
        """Positions with no keys in common are never INCOMPARABLE."""
        assert compare_positions({"lsn": 1}, {"scn": 2}) is Ordering.EQUAL

    def test_is_same_source(self):
        comparator = HistoryRecordComparator()

        assert comparator.is_same_source(
            SourceInfo.of({"server": "a"}), SourceInfo.of({"server": "a"})
        )
        assert not comparator.is_same_source(
            SourceInfo.of({"server": "a"}), SourceInfo.of({"server": "b"})
        )

    def test_is_at_or_before(self):
        comparator = HistoryRecordComparator()
        source = SourceInfo.of({"server": "a"})
        record = _record({"server": "a"}, {"pos": 5})

        assert comparator.is_at_or_before(record, source, Position.of({"pos": 5}))
        assert comparator.is_at_or_before(record, source, Position.of({"pos": 6}))
        assert not comparator.is_at_or_before(record, source, Position.of({"pos": 4}))

    def test_latest_position_includes_every_record_of_source(self):
        comparator = HistoryRecordComparator()
        record = _record({"server": "a"}, {"pos": 10**12})

        assert comparator.is_at_or_before(record, SourceInfo.of({"server": "a"}), None)
        assert not comparator.is_at_or_before(record, SourceInfo.of({"server": "b"}), None)


class TestFieldOrderComparator:
    """Test comparison on an explicit list of keys."""

    def test_fields_compared_in_given_order(self):
        comparator = FieldOrderComparator(["pos", "file"])

        assert compare_positions(
            {"file": "bin.002", "pos": 4}, {"file": "bin.001", "pos": 900}, comparator
        ) is Ordering.PRECEDES

    def test_missing_field_is_incomparable(self):
        comparator = FieldOrderComparator(["file", "pos"])

        assert compare_positions({"file": "bin.001"}, {"file": "bin.001", "pos": 1}, comparator) is (
            Ordering.INCOMPARABLE
        )

    def test_incomparable_records_not_replayed(self):
        comparator = FieldOrderComparator(["pos"])
        record = _record({"server": "a"}, {"lsn": 1})

        assert not comparator.is_at_or_before(
            record, SourceInfo.of({"server": "a"}), Position.of({"pos": 100})
        )

    def test_requires_fields(self):
        with pytest.raises(ValueError):
            FieldOrderComparator([])
