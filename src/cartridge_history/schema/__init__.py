"""Schema model mutated by recovery, table changes and the parser interface."""

from .changes import TableChange, TableChanges, TableChangeType
from .parser import DdlParser, ParseError
from .tables import Column, Table, TableId, Tables

__all__ = [
    "TableId",
    "Column",
    "Table",
    "Tables",
    "TableChangeType",
    "TableChange",
    "TableChanges",
    "DdlParser",
    "ParseError",
]
