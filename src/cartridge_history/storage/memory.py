"""In-process history store.

Keeps records in a list guarded by a lock. History lives as long as the
store object, which makes the backend suitable for tests and for embedding
where durability across processes is not required.
"""

import threading
from collections.abc import AsyncIterator

import structlog

from ..core.errors import StoreUnavailableError, StoreWriteError
from ..records.models import HistoryRecord
from .base import HistoryStore
from .factory import register_history_store

logger = structlog.get_logger(__name__)


@register_history_store("memory")
class MemoryHistoryStore(HistoryStore):
    """History store backed by an in-memory list."""

    def __init__(self, history_name: str = "default", provisioned: bool = False, **kwargs):
        super().__init__(history_name, **kwargs)
        self._records: list[HistoryRecord] = []
        self._provisioned = provisioned
        self._lock = threading.Lock()

    async def start(self) -> None:
        if not self._provisioned:
            raise StoreUnavailableError(
                f"In-memory history '{self.history_name}' has not been initialized"
            )
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def append(self, record: HistoryRecord) -> None:
        if not self.started:
            raise StoreWriteError(f"In-memory history '{self.history_name}' is not open")
        with self._lock:
            self._records.append(record)

    async def iterate(self) -> AsyncIterator[HistoryRecord]:
        with self._lock:
            snapshot = list(self._records)
        for record in snapshot:
            yield record

    async def exists(self) -> bool:
        return bool(self._records)

    async def storage_exists(self) -> bool:
        return self._provisioned

    async def initialize_storage(self) -> None:
        if not self._provisioned:
            logger.info("Initialized in-memory history", history=self.history_name)
        self._provisioned = True

    async def count(self) -> int:
        return len(self._records)


__all__ = ["MemoryHistoryStore"]
