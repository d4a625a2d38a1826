"""ETA projection for the requests queued behind the current track."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from shared.cache import AsyncTTLCache
from shared.models.song_queue import ProjectionItem, ProjectionSnapshot, QueueEntry
from shared.repositories.song_queue import QueueLogRepository
from spotify.client import SpotifyClient

logger = logging.getLogger(__name__)

DEFAULT_PROJECTION_TTL = 30.0


def project_entries(time_left_ms: int, entries: list[QueueEntry]) -> list[ProjectionItem]:
    """Each entry's ETA is the time left on the current track plus every entry before it."""
    items: list[ProjectionItem] = []
    running = max(time_left_ms, 0)
    for entry in entries:
        items.append(ProjectionItem(display_name=entry.display_name, eta_ms=running))
        running += entry.duration_ms
    return items


class QueueProjectionService:
    """Combines live playback state with the queue log, memoized per channel.

    A cached snapshot is served until its TTL runs out, even if requests were
    appended or playback moved on in the meantime.
    """

    def __init__(
        self,
        queue_logs: QueueLogRepository,
        *,
        ttl: float = DEFAULT_PROJECTION_TTL,
        maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.queue_logs = queue_logs
        self._cache = AsyncTTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    async def project(self, channel_id: str, client: SpotifyClient) -> ProjectionSnapshot:
        """Return the channel's projection. Provider errors propagate and are not cached."""
        return await self._cache.get_or_compute(
            f"projection:{channel_id}", lambda: self._compute(channel_id, client)
        )

    async def _compute(self, channel_id: str, client: SpotifyClient) -> ProjectionSnapshot:
        current = await client.currently_playing()
        if current is None:
            return ProjectionSnapshot(computed_at=datetime.now(UTC))

        entries = await self.queue_logs.entries_after(channel_id, current.track.id)
        if not entries:
            logger.debug(
                f"[Projection] {channel_id}: current track {current.track.id} not followed by logged requests"
            )
        return ProjectionSnapshot(
            computed_at=datetime.now(UTC),
            items=project_entries(current.time_left_ms, entries),
            now_playing=current.track.display_name,
        )

    def invalidate(self, channel_id: str) -> None:
        self._cache.invalidate(f"projection:{channel_id}")
