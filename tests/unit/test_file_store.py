"""Tests for the JSON-lines file history store."""

import os
import threading

import pytest

from cartridge_history.core.errors import (
    StoreReadError,
    StoreUnavailableError,
    StoreWriteError,
)
from cartridge_history.records.models import HistoryRecord
from cartridge_history.storage.file import FileHistoryStore


def _record(pos):
    return HistoryRecord(
        source={"server": "a"},
        position={"file": "bin.001", "pos": pos},
        database_name="inventory",
        ddl=f"CREATE TABLE t{pos} (id INT)",
    )


async def _collect(store):
    return [record async for record in store.iterate()]


@pytest.fixture
async def store(tmp_path):
    """Provisioned and started file store."""
    store = FileHistoryStore(tmp_path / "history" / "schema.jsonl", history_name="test")
    await store.initialize_storage()
    await store.start()
    yield store
    await store.stop()


class TestProvisioning:
    """Test storage_exists/exists/initialize_storage."""

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        store = FileHistoryStore(tmp_path / "missing.jsonl")

        assert not await store.storage_exists()
        assert not await store.exists()
        assert await _collect(store) == []
        with pytest.raises(StoreUnavailableError):
            await store.start()

    @pytest.mark.asyncio
    async def test_initialize_creates_empty_file(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "history.jsonl"
        store = FileHistoryStore(path)

        await store.initialize_storage()

        assert path.exists()
        assert await store.storage_exists()
        assert not await store.exists()

    @pytest.mark.asyncio
    async def test_initialize_keeps_existing_history(self, store):
        await store.append(_record(1))

        await store.initialize_storage()

        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_append_requires_start(self, tmp_path):
        store = FileHistoryStore(tmp_path / "history.jsonl")
        await store.initialize_storage()

        with pytest.raises(StoreWriteError):
            await store.append(_record(1))


class TestAppendAndIterate:
    """Test durable appends and snapshot reads."""

    @pytest.mark.asyncio
    async def test_one_document_per_line(self, store):
        await store.append(_record(1))
        await store.append(_record(2))

        lines = store.path.read_text().splitlines()

        assert len(lines) == 2
        assert HistoryRecord.from_json(lines[1]).position["pos"] == 2

    @pytest.mark.asyncio
    async def test_history_survives_reopen(self, store, tmp_path):
        await store.append(_record(1))
        await store.append(_record(2))
        await store.stop()

        reopened = FileHistoryStore(store.path)
        await reopened.start()
        records = await _collect(reopened)
        await reopened.stop()

        assert [r.position["pos"] for r in records] == [1, 2]
        assert records[0].database_name == "inventory"

    @pytest.mark.asyncio
    async def test_iteration_is_a_snapshot(self, store):
        await store.append(_record(1))
        await store.append(_record(2))

        seen = []
        async for record in store.iterate():
            seen.append(record.position["pos"])
            await store.append(_record(10 + len(seen)))

        assert seen == [1, 2]
        assert await store.count() == 4

    @pytest.mark.asyncio
    async def test_torn_trailing_line_ignored(self, store):
        await store.append(_record(1))
        with open(store.path, "ab") as f:
            f.write(b'{"source": {"server": "a"}, "posi')

        records = await _collect(store)

        assert [r.position["pos"] for r in records] == [1]

    @pytest.mark.asyncio
    async def test_torn_line_alone_is_not_history(self, store):
        with open(store.path, "ab") as f:
            f.write(b'{"source": {"server": "a"}, "posi')

        assert await store.exists() is False
        assert await _collect(store) == []

        with open(store.path, "ab") as f:
            f.write(b'tion": {"pos": 1}, "ddl": "CREATE TABLE t (id INT)"}\n')

        assert await store.exists() is True

    @pytest.mark.asyncio
    async def test_append_runs_off_the_event_loop(self, store, monkeypatch):
        real_fsync = os.fsync
        threads = []

        def recording_fsync(fd):
            threads.append(threading.current_thread())
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", recording_fsync)

        await store.append(_record(1))

        assert threads and threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_corrupt_complete_line_raises(self, store):
        await store.append(_record(1))
        with open(store.path, "ab") as f:
            f.write(b"not json\n")

        with pytest.raises(StoreReadError, match=":2"):
            await _collect(store)

    @pytest.mark.asyncio
    async def test_failed_append_rolls_back(self, store, monkeypatch):
        await store.append(_record(1))
        size = store.path.stat().st_size
        real_write = os.write

        def partial_write(fd, data):
            if len(data) > 10:
                return real_write(fd, bytes(data[:10]))
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "write", partial_write)

        with pytest.raises(StoreWriteError, match="No space left"):
            await store.append(_record(2))

        monkeypatch.undo()
        assert store.path.stat().st_size == size
        assert [r.position["pos"] for r in await _collect(store)] == [1]

        await store.append(_record(3))
        assert [r.position["pos"] for r in await _collect(store)] == [1, 3]

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, store):
        await store.stop()
        await store.stop()

        assert not store.started
