"""Mutable in-memory model of a database's table definitions."""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Optional

_IDENTIFIER_QUOTES = {'"': '"', "`": "`", "[": "]"}


def _split_identifier(text: str) -> list[str]:
    """Split a dotted identifier, honouring quoted parts.

    Inside a quoted part a doubled closing quote stands for one literal quote.
    """
    parts: list[str] = []
    current: list[str] = []
    closing: Optional[str] = None
    text = text.strip()
    i = 0
    while i < len(text):
        ch = text[i]
        i += 1
        if closing:
            if ch != closing:
                current.append(ch)
            elif text[i:i + 1] == closing:
                current.append(ch)
                i += 1
            else:
                closing = None
        elif ch in _IDENTIFIER_QUOTES:
            closing = _IDENTIFIER_QUOTES[ch]
        elif ch == ".":
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if closing:
        raise ValueError(f"Unterminated quote in table identifier: {text!r}")
    parts.append("".join(current))
    return parts


@dataclass(frozen=True)
class TableId:
    """Fully qualified identity of a table."""

    catalog: Optional[str]
    schema: Optional[str]
    table: str

    @classmethod
    def parse(cls, text: str, use_catalog_before_schema: bool = True) -> "TableId":
        """Parse a dotted table identifier.

        Args:
            text: Identifier such as ``orders``, ``inventory.orders`` or
                ``db.public.orders``; parts may be quoted
            use_catalog_before_schema: For two-part names, whether the first
                part is the catalog (True) or the schema (False)

        Returns:
            The parsed TableId

        Raises:
            ValueError: If the identifier is empty or has more than three parts
        """
        parts = _split_identifier(text)
        if any(not part for part in parts):
            raise ValueError(f"Invalid table identifier: {text!r}")
        if len(parts) == 1:
            return cls(None, None, parts[0])
        if len(parts) == 2:
            if use_catalog_before_schema:
                return cls(parts[0], None, parts[1])
            return cls(None, parts[0], parts[1])
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2])
        raise ValueError(f"Invalid table identifier: {text!r}")

    @property
    def identifier(self) -> str:
        return ".".join(part for part in (self.catalog, self.schema, self.table) if part)

    def quoted(self) -> str:
        """Double-quoted form that parse() reads back exactly."""
        return ".".join(
            '"' + part.replace('"', '""') + '"'
            for part in (self.catalog, self.schema, self.table)
            if part
        )

    def __str__(self) -> str:
        return self.identifier


@dataclass(frozen=True)
class Column:
    """Definition of a table column."""

    name: str
    type_name: str
    position: int = 1
    nullable: bool = True
    length: Optional[int] = None
    scale: Optional[int] = None
    default_value: Optional[Any] = None
    auto_incremented: bool = False

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "name": self.name,
            "typeName": self.type_name,
            "position": self.position,
            "optional": self.nullable,
            "autoIncremented": self.auto_incremented,
        }
        if self.length is not None:
            document["length"] = self.length
        if self.scale is not None:
            document["scale"] = self.scale
        if self.default_value is not None:
            document["defaultValue"] = self.default_value
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Column":
        return cls(
            name=document["name"],
            type_name=document["typeName"],
            position=document.get("position", 1),
            nullable=document.get("optional", True),
            length=document.get("length"),
            scale=document.get("scale"),
            default_value=document.get("defaultValue"),
            auto_incremented=document.get("autoIncremented", False),
        )


@dataclass(frozen=True)
class Table:
    """Definition of a table: its identity, columns and primary key."""

    id: TableId
    columns: tuple[Column, ...] = ()
    primary_key_columns: tuple[str, ...] = ()
    comment: Optional[str] = None

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Optional[Column]:
        """Find a column by name, ignoring case."""
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def with_column(self, column: Column) -> "Table":
        """Return a copy with column added, or replacing a same-named column."""
        existing = self.column(column.name)
        if existing is None:
            column = replace(column, position=len(self.columns) + 1)
            return replace(self, columns=self.columns + (column,))
        column = replace(column, position=existing.position)
        return replace(
            self,
            columns=tuple(column if c is existing else c for c in self.columns),
        )

    def without_column(self, name: str) -> "Table":
        """Return a copy without the named column, renumbering positions."""
        remaining = [c for c in self.columns if c.name.lower() != name.lower()]
        return replace(
            self,
            columns=tuple(replace(c, position=i) for i, c in enumerate(remaining, 1)),
            primary_key_columns=tuple(
                pk for pk in self.primary_key_columns if pk.lower() != name.lower()
            ),
        )

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "columns": [column.to_document() for column in self.columns],
            "primaryKeyColumnNames": list(self.primary_key_columns),
        }
        if self.comment is not None:
            document["comment"] = self.comment
        return document

    @classmethod
    def from_document(cls, table_id: TableId, document: dict[str, Any]) -> "Table":
        return cls(
            id=table_id,
            columns=tuple(Column.from_document(c) for c in document.get("columns", [])),
            primary_key_columns=tuple(document.get("primaryKeyColumnNames", [])),
            comment=document.get("comment"),
        )


@dataclass
class Tables:
    """The schema model mutated during recovery: table definitions by id."""

    _tables: dict[TableId, Table] = field(default_factory=dict)

    @classmethod
    def of(cls, tables: Iterable[Table]) -> "Tables":
        return cls({table.id: table for table in tables})

    def overwrite_table(self, table: Table) -> Optional[Table]:
        """Add or replace a table definition, returning the previous one."""
        previous = self._tables.get(table.id)
        self._tables[table.id] = table
        return previous

    def remove_table(self, table_id: TableId) -> Optional[Table]:
        return self._tables.pop(table_id, None)

    def for_table(self, table_id: TableId) -> Optional[Table]:
        return self._tables.get(table_id)

    def table_ids(self) -> list[TableId]:
        return sorted(self._tables, key=lambda table_id: table_id.identifier)

    def clone(self) -> "Tables":
        return Tables(dict(self._tables))

    def restore(self, snapshot: "Tables") -> None:
        """Reset this model to the state captured by clone()."""
        self._tables = dict(snapshot._tables)

    def clear(self) -> None:
        self._tables.clear()

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, table_id: object) -> bool:
        return table_id in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter([self._tables[table_id] for table_id in self.table_ids()])


__all__ = ["TableId", "Column", "Table", "Tables"]
