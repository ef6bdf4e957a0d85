"""Base interface for schema history storage backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from ..records.models import HistoryRecord


class HistoryStore(ABC):
    """Append-only, durable sequence of history records.

    Implementations must guarantee that:
    - append() either makes the record fully durable or raises StoreWriteError
    - iterate() yields records in append order from a snapshot taken when the
      pass starts; each call starts a fresh pass
    - exists() reports population and storage_exists() reports provisioning,
      independently of each other
    - initialize_storage() is idempotent and never destroys existing history
    """

    def __init__(self, history_name: str = "default", **kwargs):
        """Initialize the base store.

        Args:
            history_name: Logical name of the history kept in this store
            **kwargs: Additional backend-specific configuration
        """
        self.history_name = history_name
        self.config = kwargs
        self.started = False

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @abstractmethod
    async def start(self) -> None:
        """Open the store.

        Raises:
            StoreUnavailableError: If storage is not provisioned or cannot be opened
        """

    @abstractmethod
    async def stop(self) -> None:
        """Release resources acquired by start()."""

    @abstractmethod
    async def append(self, record: HistoryRecord) -> None:
        """Durably persist one record.

        Raises:
            StoreWriteError: If the record could not be persisted
        """

    @abstractmethod
    def iterate(self) -> AsyncIterator[HistoryRecord]:
        """Yield stored records in append order."""

    @abstractmethod
    async def exists(self) -> bool:
        """Check whether at least one record has been appended."""

    @abstractmethod
    async def storage_exists(self) -> bool:
        """Check whether the underlying storage has been provisioned."""

    @abstractmethod
    async def initialize_storage(self) -> None:
        """Provision the underlying storage if it does not exist yet."""

    async def count(self) -> int:
        """Count stored records with a full pass."""
        total = 0
        async for _ in self.iterate():
            total += 1
        return total


__all__ = ["HistoryStore"]
