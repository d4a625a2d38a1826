"""Tests for the durable per-channel queue log."""

from __future__ import annotations

import asyncio
import json

import pytest

from conftest import make_entry
from shared.errors import PersistenceError
from shared.models.song_queue import QueueEntry
from shared.repositories.song_queue import (
    JsonFileQueueLogStore,
    QueueLog,
    QueueLogRepository,
)


@pytest.mark.asyncio
async def test_entries_after_marker(memory_store) -> None:
    repo = QueueLogRepository(memory_store)
    await repo.append("chan", make_entry("u1", 30_000, "A"))
    await repo.append("chan", make_entry("u2", 45_000, "B"))

    after = await repo.entries_after("chan", "u1")

    assert [e.display_name for e in after] == ["B"]
    assert await repo.entries_after("chan", "u2") == []
    assert await repo.entries_after("chan", "zzz") == []


def test_entries_after_uses_most_recent_occurrence() -> None:
    log = QueueLog(
        "chan",
        [make_entry("a"), make_entry("b"), make_entry("a"), make_entry("c")],
        cap=100,
    )

    assert [e.track_id for e in log.entries_after("a")] == ["c"]


@pytest.mark.asyncio
async def test_retention_keeps_newest_entries(memory_store) -> None:
    repo = QueueLogRepository(memory_store, cap=100)
    for i in range(105):
        await repo.append("chan", make_entry(f"t{i}"))

    log = await repo.get("chan")

    assert len(log) == 100
    assert log.entries[0].track_id == "t5"
    assert log.entries[-1].track_id == "t104"
    assert len(memory_store.data["chan"]) == 100
    assert len(await repo.entries_after("chan", "t5")) == 99


@pytest.mark.asyncio
async def test_channels_are_isolated(memory_store) -> None:
    repo = QueueLogRepository(memory_store)
    await repo.append("chan-a", make_entry("a1"))
    await repo.append("chan-b", make_entry("b1"))

    assert [e.track_id for e in (await repo.get("chan-a")).entries] == ["a1"]
    assert [e.track_id for e in (await repo.get("chan-b")).entries] == ["b1"]


@pytest.mark.asyncio
async def test_load_failure_starts_empty(memory_store) -> None:
    memory_store.data["chan"] = [make_entry("old")]
    memory_store.fail_loads = True
    repo = QueueLogRepository(memory_store)

    log = await repo.get("chan")

    assert len(log) == 0


@pytest.mark.asyncio
async def test_write_failure_leaves_memory_unchanged(memory_store) -> None:
    repo = QueueLogRepository(memory_store)
    await repo.append("chan", make_entry("first"))
    memory_store.fail_writes = True

    with pytest.raises(PersistenceError):
        await repo.append("chan", make_entry("second"))

    assert [e.track_id for e in (await repo.get("chan")).entries] == ["first"]


@pytest.mark.asyncio
async def test_concurrent_appends_are_all_kept(memory_store) -> None:
    repo = QueueLogRepository(memory_store)

    await asyncio.gather(*(repo.append("chan", make_entry(f"t{i}")) for i in range(20)))

    log = await repo.get("chan")
    assert len(log) == 20
    assert {e.track_id for e in log.entries} == {f"t{i}" for i in range(20)}
    assert len(memory_store.data["chan"]) == 20


@pytest.mark.asyncio
async def test_drop_removes_stored_log(memory_store) -> None:
    repo = QueueLogRepository(memory_store)
    await repo.append("chan", make_entry("t1"))

    await repo.drop("chan")

    assert "chan" not in memory_store.data
    assert len(await repo.get("chan")) == 0


def test_cap_must_be_positive(memory_store) -> None:
    with pytest.raises(ValueError):
        QueueLogRepository(memory_store, cap=0)


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_json_store_survives_restart(tmp_path) -> None:
    repo = QueueLogRepository(JsonFileQueueLogStore(tmp_path))
    await repo.append("123", make_entry("u1", 30_000, "A"))
    await repo.append("123", make_entry("u2", 45_000, "B"))

    reloaded = QueueLogRepository(JsonFileQueueLogStore(tmp_path))
    after = await reloaded.entries_after("123", "u1")

    assert after == [QueueEntry(display_name="B", duration_ms=45_000, track_id="u2")]


@pytest.mark.asyncio
async def test_json_store_layout(tmp_path) -> None:
    repo = QueueLogRepository(JsonFileQueueLogStore(tmp_path))
    await repo.append("123", make_entry("u1", 30_000, "A"))

    data = json.loads((tmp_path / "123.json").read_text(encoding="utf-8"))

    assert data == [{"displayName": "A", "durationMs": 30_000, "trackId": "u1"}]
    assert not (tmp_path / "123.json.tmp").exists()


@pytest.mark.asyncio
async def test_corrupt_json_file_starts_empty(tmp_path) -> None:
    (tmp_path / "123.json").write_text("{not json", encoding="utf-8")
    repo = QueueLogRepository(JsonFileQueueLogStore(tmp_path))

    assert len(await repo.get("123")) == 0

    await repo.append("123", make_entry("u1"))
    data = json.loads((tmp_path / "123.json").read_text(encoding="utf-8"))
    assert [item["trackId"] for item in data] == ["u1"]


@pytest.mark.asyncio
async def test_json_store_rejects_bad_entries(tmp_path) -> None:
    (tmp_path / "123.json").write_text(
        json.dumps([{"displayName": "A", "durationMs": 0, "trackId": "u1"}]),
        encoding="utf-8",
    )
    store = JsonFileQueueLogStore(tmp_path)

    with pytest.raises(PersistenceError):
        await store.load("123")


@pytest.mark.asyncio
async def test_json_store_missing_file_is_empty(tmp_path) -> None:
    store = JsonFileQueueLogStore(tmp_path / "nested")

    assert await store.load("404") == []
    await store.delete("404")


@pytest.mark.asyncio
async def test_json_store_shares_lock_per_file(tmp_path) -> None:
    store = JsonFileQueueLogStore(tmp_path)
    repo = QueueLogRepository(store)

    assert repo._get_lock("123") is repo._get_lock("123")
    assert repo._get_lock("123") is not repo._get_lock("456")

