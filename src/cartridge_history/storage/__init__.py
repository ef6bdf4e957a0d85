"""Schema history storage backends."""

# Import backends to register them
from . import file, memory, postgresql  # noqa: F401
from .base import HistoryStore
from .factory import StoreFactory, StoreRegistry, register_history_store
from .file import FileHistoryStore
from .memory import MemoryHistoryStore
from .postgresql import PostgreSQLHistoryStore

__all__ = [
    # Base interface
    "HistoryStore",
    # Backends
    "MemoryHistoryStore",
    "FileHistoryStore",
    "PostgreSQLHistoryStore",
    # Factory and registry
    "StoreFactory",
    "StoreRegistry",
    "register_history_store",
]
