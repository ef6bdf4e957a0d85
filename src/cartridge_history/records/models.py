"""Data models for schema history records.

This module defines the pydantic models persisted by every history store:
- SourceInfo and Position, validated string-keyed maps of primitive values
- HistoryRecord, one immutable DDL entry with its surrounding metadata

Values inside a source or position map are tagged by kind (null, boolean,
number, string) so that comparators can order heterogeneous values without
interpreting the map structurally.
"""

import json
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Iterator, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    model_validator,
)

# Order matters: bool is a subclass of int and must be tried first
OffsetValue = Optional[Union[StrictBool, StrictInt, StrictFloat, StrictStr]]


class ValueTag(IntEnum):
    """Kinds of values allowed in source and position maps, in sort order."""

    NULL = 0
    BOOLEAN = 1
    NUMBER = 2
    STRING = 3


def tag_of(value: Any) -> ValueTag:
    """Return the kind tag of a source or position value."""
    if value is None:
        return ValueTag.NULL
    if isinstance(value, bool):
        return ValueTag.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueTag.NUMBER
    return ValueTag.STRING


class OffsetMap(RootModel[dict[StrictStr, OffsetValue]]):
    """Immutable, validated mapping of string keys to primitive values."""

    model_config = ConfigDict(frozen=True)

    root: dict[StrictStr, OffsetValue] = Field(default_factory=dict)

    @classmethod
    def of(cls, value: Union["OffsetMap", Mapping[str, Any], None]):
        """Coerce a plain mapping (or another offset map) into this type.

        Raises:
            ValueError: If value is None or contains unsupported keys/values
        """
        if value is None:
            raise ValueError(f"{cls.__name__} may not be None")
        if isinstance(value, cls):
            return value
        if isinstance(value, OffsetMap):
            value = value.root
        return cls(dict(value))

    def __getitem__(self, key: str) -> Any:
        return self.root[key]

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, key: object) -> bool:
        return key in self.root

    def get(self, key: str, default: Any = None) -> Any:
        return self.root.get(key, default)

    def keys(self):
        return self.root.keys()

    def items(self):
        return self.root.items()

    def tagged(self, key: str) -> tuple[ValueTag, Any]:
        """Return the (tag, value) pair for a key, suitable for ordering."""
        value = self.root[key]
        return tag_of(value), value

    def as_dict(self) -> dict[str, Any]:
        return dict(self.root)

    def __hash__(self) -> int:
        return hash(frozenset(self.root.items()))

    def __str__(self) -> str:
        return json.dumps(self.root, sort_keys=True, separators=(",", ":"))


class SourceInfo(OffsetMap):
    """Attributes identifying the logical database that produced a record."""


class Position(OffsetMap):
    """Coordinates of a record in the source's native change stream."""


# Omitted from stored documents when None
_OPTIONAL_FIELDS = ("database_name", "schema_name", "ddl", "table_changes")


class HistoryRecord(BaseModel):
    """One entry in the schema history log."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: SourceInfo
    position: Position
    database_name: Optional[str] = Field(None, alias="databaseName")
    schema_name: Optional[str] = Field(None, alias="schemaName")
    ddl: Optional[str] = None
    table_changes: Optional[list[dict[str, Any]]] = Field(None, alias="tableChanges")
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="recordedAt"
    )

    @model_validator(mode="after")
    def validate_content(self) -> "HistoryRecord":
        """A record must carry either DDL text or captured table changes."""
        if self.ddl is None and self.table_changes is None:
            raise ValueError("history record requires ddl or table changes")
        return self

    @property
    def has_table_changes(self) -> bool:
        return bool(self.table_changes)

    def _absent_fields(self) -> set[str]:
        return {name for name in _OPTIONAL_FIELDS if getattr(self, name) is None}

    def to_document(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible document stored by backends."""
        return self.model_dump(mode="json", by_alias=True, exclude=self._absent_fields())

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "HistoryRecord":
        return cls.model_validate(dict(document))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude=self._absent_fields())

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "HistoryRecord":
        return cls.model_validate_json(text)


__all__ = [
    "OffsetValue",
    "ValueTag",
    "tag_of",
    "OffsetMap",
    "SourceInfo",
    "Position",
    "HistoryRecord",
]
