"""Interface of the DDL parser consumed during recovery."""

from typing import Optional, Protocol, runtime_checkable

from ..core.errors import ParseError
from .changes import TableChanges
from .tables import Tables


@runtime_checkable
class DdlParser(Protocol):
    """Protocol for DDL parsers.

    The grammar lives outside this package; recovery only needs a parser that
    applies one statement to a schema model.
    """

    def apply(
        self,
        statement: str,
        tables: Tables,
        database_name: Optional[str] = None,
        schema_name: Optional[str] = None,
    ) -> Optional[TableChanges]:
        """Apply a DDL statement to tables.

        Args:
            statement: Raw DDL text
            tables: Schema model to mutate
            database_name: Database the statement was executed in, if known
            schema_name: Schema the statement was executed in, if known

        Returns:
            The table changes the statement produced, if the parser reports them

        Raises:
            ParseError: If the statement cannot be parsed
        """
        ...


__all__ = ["DdlParser", "ParseError"]
