"""Durable, size-bounded queue log of accepted song requests per channel.

Storage backends:
  - JsonFileQueueLogStore: one JSON array per channel on local disk
  - PostgresQueueLogStore: one row per entry in the song_queue_log table

Both sit behind QueueLogRepository, which owns the in-memory copy of every
channel's log and serializes appends per storage key.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Protocol

import asyncpg

from shared.errors import PersistenceError
from shared.models.song_queue import QueueEntry

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_LOG_CAP = 100


class QueueLogStore(Protocol):
    """Persistence backend for channel queue logs."""

    def storage_key(self, channel_id: str) -> str:
        """Identity of the channel's storage; appends are serialized per key."""
        ...

    async def load(self, channel_id: str) -> list[QueueEntry]:
        """Return persisted entries (oldest first), [] when nothing is stored.

        Raises PersistenceError when stored data cannot be read or parsed.
        """
        ...

    async def write(self, channel_id: str, entries: list[QueueEntry], appended: QueueEntry) -> None:
        """Persist *entries* (already trimmed, ending with *appended*)."""
        ...

    async def delete(self, channel_id: str) -> None: ...


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


class JsonFileQueueLogStore:
    """Stores each channel's log as ``<directory>/<channel_id>.json``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, channel_id: str) -> Path:
        return self.directory / f"{channel_id}.json"

    def storage_key(self, channel_id: str) -> str:
        return str(self._path(channel_id).resolve())

    async def load(self, channel_id: str) -> list[QueueEntry]:
        return await asyncio.to_thread(self._read, self._path(channel_id))

    async def write(self, channel_id: str, entries: list[QueueEntry], appended: QueueEntry) -> None:
        payload = [entry.to_dict() for entry in entries]
        try:
            await asyncio.to_thread(self._write, self._path(channel_id), payload)
        except OSError as e:
            raise PersistenceError(f"Failed to write queue log for {channel_id}: {e}") from e

    async def delete(self, channel_id: str) -> None:
        await asyncio.to_thread(self._path(channel_id).unlink, missing_ok=True)

    @staticmethod
    def _read(path: Path) -> list[QueueEntry]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return [QueueEntry.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Unreadable queue log {path}: {e}") from e

    @staticmethod
    def _write(path: Path, payload: list[dict]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write atomically so a crash never leaves half a file behind
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)


# ---------------------------------------------------------------------------
# PostgreSQL backend
# ---------------------------------------------------------------------------

_ENTRY_COLUMNS = "display_name, duration_ms, track_id"


class PostgresQueueLogStore:
    """Pure SQL operations for the song_queue_log table."""

    TABLE = "song_queue_log"

    def __init__(self, pool: asyncpg.Pool, cap: int = DEFAULT_QUEUE_LOG_CAP) -> None:
        self.pool = pool
        self.cap = cap

    def storage_key(self, channel_id: str) -> str:
        return f"pg:{self.TABLE}:{channel_id}"

    async def ensure_table(self) -> None:
        """Create the log table if it does not exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    id           BIGSERIAL PRIMARY KEY,
                    channel_id   TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    duration_ms  INTEGER NOT NULL CHECK (duration_ms > 0),
                    track_id     TEXT NOT NULL,
                    created_at   TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )
            await conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.TABLE}_channel "
                f"ON {self.TABLE} (channel_id, id)"
            )

    async def load(self, channel_id: str) -> list[QueueEntry]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_ENTRY_COLUMNS} FROM {self.TABLE} "
                    "WHERE channel_id = $1 ORDER BY id ASC",
                    channel_id,
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Failed to load queue log for {channel_id}: {e}") from e
        return [
            QueueEntry(
                display_name=row["display_name"],
                duration_ms=row["duration_ms"],
                track_id=row["track_id"],
            )
            for row in rows
        ]

    async def write(self, channel_id: str, entries: list[QueueEntry], appended: QueueEntry) -> None:
        """Insert *appended* and drop rows beyond the newest ``cap`` in one transaction."""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f"INSERT INTO {self.TABLE} (channel_id, {_ENTRY_COLUMNS}) "
                        "VALUES ($1, $2, $3, $4)",
                        channel_id,
                        appended.display_name,
                        appended.duration_ms,
                        appended.track_id,
                    )
                    await conn.execute(
                        f"""
                        DELETE FROM {self.TABLE}
                        WHERE channel_id = $1 AND id NOT IN (
                            SELECT id FROM {self.TABLE}
                            WHERE channel_id = $1
                            ORDER BY id DESC
                            LIMIT $2
                        )
                        """,
                        channel_id,
                        self.cap,
                    )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Failed to append queue log for {channel_id}: {e}") from e

    async def delete(self, channel_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(f"DELETE FROM {self.TABLE} WHERE channel_id = $1", channel_id)


# ---------------------------------------------------------------------------
# In-memory log + repository
# ---------------------------------------------------------------------------


class QueueLog:
    """In-memory view of one channel's log. Mutated only by QueueLogRepository."""

    def __init__(self, channel_id: str, entries: list[QueueEntry], cap: int) -> None:
        self.channel_id = channel_id
        self.cap = cap
        self._entries: tuple[QueueEntry, ...] = tuple(entries[-cap:])

    @property
    def entries(self) -> tuple[QueueEntry, ...]:
        return self._entries

    def entries_after(self, marker_track_id: str) -> list[QueueEntry]:
        """Entries strictly after the most recent occurrence of *marker_track_id*.

        Returns [] when the marker is not in the log.
        """
        for index in range(len(self._entries) - 1, -1, -1):
            if self._entries[index].track_id == marker_track_id:
                return list(self._entries[index + 1 :])
        return []

    def _with_appended(self, entry: QueueEntry) -> list[QueueEntry]:
        """Oldest entries are dropped first so the result holds at most ``cap`` items."""
        kept = [*self._entries, entry]
        return kept[-self.cap :]

    def _replace(self, entries: list[QueueEntry]) -> None:
        self._entries = tuple(entries)

    def __len__(self) -> int:
        return len(self._entries)


class QueueLogRepository:
    """Lazily loaded, per-channel queue logs backed by a :class:`QueueLogStore`."""

    def __init__(self, store: QueueLogStore, cap: int = DEFAULT_QUEUE_LOG_CAP) -> None:
        if cap < 1:
            raise ValueError("queue log cap must be at least 1")
        self.store = store
        self.cap = cap
        self._logs: dict[str, QueueLog] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, channel_id: str) -> asyncio.Lock:
        key = self.store.storage_key(channel_id)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def _load_locked(self, channel_id: str) -> QueueLog:
        log = self._logs.get(channel_id)
        if log is not None:
            return log
        try:
            entries = await self.store.load(channel_id)
        except PersistenceError as e:
            # A corrupt or unreachable log must never block the bot
            logger.warning(f"[QueueLog] Starting empty log for {channel_id}: {e}")
            entries = []
        log = QueueLog(channel_id, entries, self.cap)
        self._logs[channel_id] = log
        logger.debug(f"[QueueLog] Loaded {len(log)} entries for {channel_id}")
        return log

    async def get(self, channel_id: str) -> QueueLog:
        """Return the channel's log, loading it from storage on first access."""
        log = self._logs.get(channel_id)
        if log is not None:
            return log
        async with self._get_lock(channel_id):
            return await self._load_locked(channel_id)

    async def append(self, channel_id: str, entry: QueueEntry) -> None:
        """Persist *entry* after every previously accepted entry for the channel.

        Raises PersistenceError when the write fails; the in-memory log is
        then left unchanged.
        """
        async with self._get_lock(channel_id):
            log = await self._load_locked(channel_id)
            updated = log._with_appended(entry)
            await self.store.write(channel_id, updated, entry)
            log._replace(updated)
        logger.debug(f"[QueueLog] {channel_id} += {entry.display_name} ({len(updated)} entries)")

    async def entries_after(self, channel_id: str, marker_track_id: str) -> list[QueueEntry]:
        log = await self.get(channel_id)
        return log.entries_after(marker_track_id)

    async def drop(self, channel_id: str) -> None:
        """Delete a channel's log from memory and storage (explicit channel removal)."""
        async with self._get_lock(channel_id):
            self._logs.pop(channel_id, None)
            await self.store.delete(channel_id)
        logger.info(f"[QueueLog] Dropped queue log for {channel_id}")
