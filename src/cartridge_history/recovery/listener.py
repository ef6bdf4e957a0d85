"""Listeners notified of notable history and recovery events."""

from typing import Protocol, runtime_checkable

import structlog

from ..records.models import HistoryRecord

logger = structlog.get_logger(__name__)


@runtime_checkable
class HistoryListener(Protocol):
    """Protocol for history event listeners.

    Notifications are fire-and-forget: implementations must return quickly,
    and any exception they raise is logged and otherwise ignored.
    """

    def started(self) -> None: ...

    def stopped(self) -> None: ...

    def recovery_started(self) -> None: ...

    def recovery_stopped(self) -> None: ...

    def on_change_applied(self, record: HistoryRecord) -> None:
        """Called after a record has been appended to the history."""
        ...

    def on_change_from_history(self, record: HistoryRecord) -> None:
        """Called for every record replayed during recovery."""
        ...

    def on_unparseable_statement(self, record: HistoryRecord, error: Exception) -> None:
        """Called when recovery skips a record whose DDL cannot be parsed."""
        ...


class NoopHistoryListener:
    """Listener that ignores every event."""

    def started(self) -> None:
        pass

    def stopped(self) -> None:
        pass

    def recovery_started(self) -> None:
        pass

    def recovery_stopped(self) -> None:
        pass

    def on_change_applied(self, record: HistoryRecord) -> None:
        pass

    def on_change_from_history(self, record: HistoryRecord) -> None:
        pass

    def on_unparseable_statement(self, record: HistoryRecord, error: Exception) -> None:
        pass


def notify(listener: HistoryListener, event: str, *args) -> None:
    """Deliver one event to a listener without letting it break the caller."""
    try:
        getattr(listener, event)(*args)
    except Exception as e:
        logger.warning("History listener failed", listener_event=event, error=str(e))


__all__ = ["HistoryListener", "NoopHistoryListener", "notify"]
