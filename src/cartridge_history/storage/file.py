"""File-based history store.

Persists one JSON document per line. Every append is written in full,
flushed and fsynced before it returns; a failed append truncates the file
back to its previous length so that no partial record survives. Readers
snapshot the file size when a pass starts and never read past it.
"""

import asyncio
import os
import threading
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Optional, Union

import structlog

from ..core.errors import StoreReadError, StoreUnavailableError, StoreWriteError
from ..records.models import HistoryRecord
from .base import HistoryStore
from .factory import register_history_store

logger = structlog.get_logger(__name__)


@register_history_store("file")
class FileHistoryStore(HistoryStore):
    """History store backed by a JSON-lines file."""

    def __init__(self, path: Union[str, Path], history_name: str = "default", **kwargs):
        """Initialize the file store.

        Args:
            path: Location of the history file
            history_name: Logical name of the history
            **kwargs: Additional configuration (ignored)
        """
        super().__init__(history_name, **kwargs)
        self.path = Path(path)
        self._fd: Optional[int] = None
        self._lock = threading.Lock()
        self.logger = logger.bind(history=history_name, path=str(self.path))

    async def start(self) -> None:
        if self.started:
            return

        if not self.path.exists():
            raise StoreUnavailableError(f"History file does not exist: {self.path}")

        try:
            self._fd = os.open(self.path, os.O_WRONLY | os.O_APPEND)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot open history file {self.path}: {e}") from e

        self.started = True
        self.logger.info("Opened history file")

    async def stop(self) -> None:
        if self._fd is None:
            self.started = False
            return

        fd, self._fd = self._fd, None
        self.started = False
        os.close(fd)
        self.logger.info("Closed history file")

    async def append(self, record: HistoryRecord) -> None:
        if self._fd is None:
            raise StoreWriteError(f"History file is not open: {self.path}")

        data = (record.to_json() + "\n").encode("utf-8")
        await asyncio.to_thread(self._write, data)

        self.logger.debug("Appended history record", position=str(record.position))

    def _write(self, data: bytes) -> None:
        with self._lock:
            offset = os.lseek(self._fd, 0, os.SEEK_END)
            try:
                view = memoryview(data)
                while view:
                    written = os.write(self._fd, view)
                    view = view[written:]
                os.fsync(self._fd)
            except OSError as e:
                self._rollback(offset)
                raise StoreWriteError(
                    f"Failed to append history record to {self.path}: {e}"
                ) from e

    def _rollback(self, offset: int) -> None:
        """Drop any bytes written past offset by a failed append."""
        try:
            os.ftruncate(self._fd, offset)
        except OSError as e:
            self.logger.error(
                "Failed to roll back partial history write", offset=offset, error=str(e)
            )

    def _read_snapshot(self) -> list[bytes]:
        """Lines present when the pass starts; a torn last line is kept as is."""
        with self._lock:
            if not self.path.exists():
                return []
            size = self.path.stat().st_size

        with open(self.path, "rb") as f:
            *complete, tail = f.read(size).split(b"\n")
        lines = [line + b"\n" for line in complete]
        if tail:
            lines.append(tail)
        return lines

    async def iterate(self) -> AsyncIterator[HistoryRecord]:
        lines = await asyncio.to_thread(self._read_snapshot)

        for line_number, line in enumerate(lines, start=1):
            if not line.endswith(b"\n"):
                self.logger.warning(
                    "Ignoring incomplete trailing history line", line=line_number
                )
                break
            if not line.strip():
                continue
            try:
                record = HistoryRecord.from_json(line)
            except ValueError as e:
                raise StoreReadError(
                    f"Corrupt history record at {self.path}:{line_number}"
                ) from e
            yield record

    async def exists(self) -> bool:
        return await asyncio.to_thread(self._has_complete_line)

    def _has_complete_line(self) -> bool:
        """A torn write with no newline yet does not count as history."""
        if not self.path.exists():
            return False
        with open(self.path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                if b"\n" in chunk:
                    return True
        return False

    async def storage_exists(self) -> bool:
        return self.path.exists()

    async def initialize_storage(self) -> None:
        if self.path.exists():
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(
                f"Cannot create history file {self.path}: {e}"
            ) from e

        self.logger.info("Created history file")


__all__ = ["FileHistoryStore"]
