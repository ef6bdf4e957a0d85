"""Metrics and logging for cartridge-history."""

from .logging import configure_logging
from .metrics import MetricsCollector

__all__ = ["MetricsCollector", "configure_logging"]
