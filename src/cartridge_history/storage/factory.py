"""Store factory for creating history storage backends from configuration."""

from typing import Optional

import structlog

from ..core.config import StorageConfig
from .base import HistoryStore

logger = structlog.get_logger(__name__)


class StoreRegistry:
    """Registry for history store implementations."""

    def __init__(self) -> None:
        self._stores: dict[str, type[HistoryStore]] = {}

    def register_store(self, store_type: str, store_class: type[HistoryStore]) -> None:
        """Register a history store implementation.

        Args:
            store_type: Backend type (e.g., "file", "postgresql")
            store_class: Class that implements HistoryStore
        """
        logger.debug(
            "Registering history store",
            type=store_type,
            class_name=store_class.__name__,
        )
        self._stores[store_type] = store_class

    def get_store_class(self, store_type: str) -> Optional[type[HistoryStore]]:
        return self._stores.get(store_type)

    def list_stores(self) -> list[str]:
        """List all registered store types."""
        return list(self._stores.keys())


# Global registry instance
_registry = StoreRegistry()


def register_history_store(store_type: str):
    """Decorator for registering history store implementations.

    Usage:
        @register_history_store("file")
        class FileHistoryStore(HistoryStore):
            ...
    """

    def decorator(store_class: type[HistoryStore]):
        _registry.register_store(store_type, store_class)
        return store_class

    return decorator


class StoreFactory:
    """Factory for creating history stores."""

    def __init__(self, registry: Optional[StoreRegistry] = None):
        """Initialize the factory with a store registry.

        Args:
            registry: Store registry to use. If None, uses global registry.
        """
        self.registry = registry or _registry

    def create_store(self, config: StorageConfig, history_name: str) -> HistoryStore:
        """Create a history store based on configuration.

        Args:
            config: Storage configuration
            history_name: Logical name of the history

        Returns:
            Configured, not yet started, store instance

        Raises:
            ValueError: If the store type is not supported
        """
        store_class = self.registry.get_store_class(config.type)

        if not store_class:
            raise ValueError(
                f"Unsupported history store type: {config.type}. "
                f"Available types: {self.registry.list_stores()}"
            )

        settings = config.model_dump(
            exclude={"type", "initialize_on_start"}, exclude_none=True
        )
        store = store_class(history_name=history_name, **settings)

        logger.info("Created history store", type=config.type, history=history_name)
        return store


__all__ = [
    "StoreFactory",
    "StoreRegistry",
    "register_history_store",
]
