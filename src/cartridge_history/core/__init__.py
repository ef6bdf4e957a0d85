"""Core configuration and errors for cartridge-history."""

from .config import HistoryConfig, MonitoringConfig, PrometheusConfig, StorageConfig
from .errors import (
    ConfigurationError,
    DdlParseError,
    HistoryError,
    LifecycleError,
    ParseError,
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
)

__all__ = [
    "HistoryConfig",
    "MonitoringConfig",
    "PrometheusConfig",
    "StorageConfig",
    "ConfigurationError",
    "DdlParseError",
    "HistoryError",
    "LifecycleError",
    "ParseError",
    "StoreReadError",
    "StoreUnavailableError",
    "StoreWriteError",
]
