"""Exception hierarchy for cartridge-history."""

from typing import Any, Optional


class HistoryError(Exception):
    """Base class for all schema history errors."""


class ConfigurationError(HistoryError):
    """Raised when history options are missing or invalid."""


class LifecycleError(HistoryError):
    """Raised when an operation is invoked in the wrong lifecycle state."""

    def __init__(self, operation: str, state: Any):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while history is {state}")


class StoreWriteError(HistoryError):
    """Raised when a history record could not be durably appended."""


class StoreUnavailableError(HistoryError):
    """Raised when the history storage is not provisioned or cannot be opened."""


class StoreReadError(HistoryError):
    """Raised when stored history cannot be read back."""


class ParseError(HistoryError):
    """Raised by DDL parser implementations for statements they cannot parse."""


class DdlParseError(HistoryError):
    """Raised when a recorded DDL statement fails to parse during recovery.

    Attributes:
        position: Position of the offending history record
        statement: The DDL text that failed to parse
    """

    def __init__(self, position: Optional[Any], statement: Optional[str], reason: str = ""):
        self.position = position
        self.statement = statement
        message = f"Cannot parse DDL recorded at {position!s}: {statement!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


__all__ = [
    "HistoryError",
    "ConfigurationError",
    "LifecycleError",
    "StoreWriteError",
    "StoreUnavailableError",
    "StoreReadError",
    "ParseError",
    "DdlParseError",
]
