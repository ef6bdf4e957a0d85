"""Schema recovery from stored history."""

from .engine import RecoveryEngine, RecoveryResult
from .listener import HistoryListener, NoopHistoryListener

__all__ = [
    "RecoveryEngine",
    "RecoveryResult",
    "HistoryListener",
    "NoopHistoryListener",
]
