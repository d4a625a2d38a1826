"""Shared fakes for song queue tests."""

from __future__ import annotations

from collections.abc import Iterable

import pytest

from shared.errors import NotFoundError, PersistenceError, SongQueueError
from shared.models.song_queue import CurrentlyPlaying, QueueEntry, Track
from spotify.utils import clamp_volume


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_track(
    track_id: str,
    name: str,
    duration_ms: int = 180_000,
    artist: str = "Artist",
    artist_id: str = "artist1",
) -> Track:
    return Track(
        id=track_id,
        uri=f"spotify:track:{track_id}",
        name=name,
        artists=[artist],
        artist_ids=[artist_id],
        duration_ms=duration_ms,
    )


def make_entry(track_id: str, duration_ms: int = 180_000, name: str | None = None) -> QueueEntry:
    return QueueEntry(
        display_name=name or f"Artist - {track_id}",
        duration_ms=duration_ms,
        track_id=track_id,
    )


class MemoryQueueLogStore:
    """QueueLogStore kept in a dict, with switchable failures."""

    def __init__(self, initial: dict[str, list[QueueEntry]] | None = None) -> None:
        self.data: dict[str, list[QueueEntry]] = {k: list(v) for k, v in (initial or {}).items()}
        self.writes: list[tuple[str, QueueEntry]] = []
        self.fail_loads = False
        self.fail_writes = False

    def storage_key(self, channel_id: str) -> str:
        return f"memory:{channel_id}"

    async def load(self, channel_id: str) -> list[QueueEntry]:
        if self.fail_loads:
            raise PersistenceError("storage unreachable")
        return list(self.data.get(channel_id, []))

    async def write(self, channel_id: str, entries: list[QueueEntry], appended: QueueEntry) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.data[channel_id] = list(entries)
        self.writes.append((channel_id, appended))

    async def delete(self, channel_id: str) -> None:
        self.data.pop(channel_id, None)


class FakeSpotifyClient:
    """In-memory stand-in for spotify.client.SpotifyClient."""

    def __init__(
        self,
        tracks: Iterable[Track] = (),
        current: CurrentlyPlaying | None = None,
        recent: Iterable[Track] = (),
    ) -> None:
        self.tracks = {t.id: t for t in tracks}
        self.current = current
        self.recent = list(recent)
        self.searches: list[str] = []
        self.enqueued: list[str] = []
        self.volumes: list[int] = []
        self.skips = 0
        self.currently_playing_calls = 0
        self.enqueue_error: SongQueueError | None = None
        self.current_error: SongQueueError | None = None
        self.skip_error: SongQueueError | None = None

    async def search(self, query: str, limit: int = 5) -> list[Track]:
        self.searches.append(query)
        matches = [t for t in self.tracks.values() if query.lower() in t.name.lower()]
        return matches[:limit]

    async def get_by_id(self, track_id: str) -> Track:
        if track_id not in self.tracks:
            raise NotFoundError(f"Track {track_id} not found", status_code=404)
        return self.tracks[track_id]

    async def enqueue(self, track_id: str) -> None:
        if self.enqueue_error is not None:
            raise self.enqueue_error
        self.enqueued.append(track_id)

    async def currently_playing(self) -> CurrentlyPlaying | None:
        self.currently_playing_calls += 1
        if self.current_error is not None:
            raise self.current_error
        return self.current

    async def recently_played(self, limit: int = 5) -> list[Track]:
        return self.recent[:limit]

    async def skip(self) -> None:
        if self.skip_error is not None:
            raise self.skip_error
        self.skips += 1

    async def set_volume(self, percent) -> int:
        volume = clamp_volume(percent)
        self.volumes.append(volume)
        return volume


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryQueueLogStore:
    return MemoryQueueLogStore()
