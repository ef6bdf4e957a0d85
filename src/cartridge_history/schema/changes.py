"""Structured table changes captured alongside recorded DDL."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Union

from ..core.errors import ParseError
from .tables import Table, TableId, Tables


class TableChangeType(str, Enum):
    """Kinds of table-level schema changes."""

    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"


@dataclass(frozen=True)
class TableChange:
    """A single table change; CREATE and ALTER carry the resulting table."""

    type: TableChangeType
    id: TableId
    table: Optional[Table] = None

    def __post_init__(self) -> None:
        if self.type is not TableChangeType.DROP and self.table is None:
            raise ValueError(f"{self.type.value} change for {self.id} requires a table")

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"type": self.type.value, "id": self.id.quoted()}
        if self.table is not None:
            document["table"] = self.table.to_document()
        return document

    @classmethod
    def from_document(
        cls, document: dict[str, Any], use_catalog_before_schema: bool = True
    ) -> "TableChange":
        """Rebuild a change from its document form.

        Two-part table ids are read as catalog.table when
        use_catalog_before_schema is set and as schema.table otherwise.
        """
        change_type = TableChangeType(document["type"])
        table_id = TableId.parse(document["id"], use_catalog_before_schema)
        table = None
        if "table" in document and document["table"] is not None:
            table = Table.from_document(table_id, document["table"])
        return cls(change_type, table_id, table)


class TableChanges:
    """Ordered collection of table changes produced by one DDL statement."""

    def __init__(self, changes: Iterable[TableChange] = ()):
        self._changes: list[TableChange] = list(changes)

    def create(self, table: Table) -> "TableChanges":
        self._changes.append(TableChange(TableChangeType.CREATE, table.id, table))
        return self

    def alter(self, table: Table) -> "TableChanges":
        self._changes.append(TableChange(TableChangeType.ALTER, table.id, table))
        return self

    def drop(self, table: Union[Table, TableId]) -> "TableChanges":
        table_id = table.id if isinstance(table, Table) else table
        self._changes.append(TableChange(TableChangeType.DROP, table_id))
        return self

    def table_ids(self) -> list[TableId]:
        return [change.id for change in self._changes]

    def apply_to(self, tables: Tables) -> None:
        """Apply every change, in order, to a schema model."""
        for change in self._changes:
            if change.type is TableChangeType.DROP:
                tables.remove_table(change.id)
            else:
                tables.overwrite_table(change.table)

    def to_documents(self) -> list[dict[str, Any]]:
        return [change.to_document() for change in self._changes]

    @classmethod
    def from_documents(
        cls, documents: Iterable[dict[str, Any]], use_catalog_before_schema: bool = True
    ) -> "TableChanges":
        """Rebuild changes from their document form.

        Raises:
            ParseError: If a document is malformed or names an invalid table id
        """
        try:
            return cls(
                [
                    TableChange.from_document(document, use_catalog_before_schema)
                    for document in documents
                ]
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Invalid table change document: {e}") from e

    def __iter__(self) -> Iterator[TableChange]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TableChanges):
            return NotImplemented
        return self._changes == other._changes

    def __repr__(self) -> str:
        return f"TableChanges({self._changes!r})"


__all__ = ["TableChangeType", "TableChange", "TableChanges"]
