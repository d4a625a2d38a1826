"""Song request orchestration: Resolve → BlockCheck → DuplicateCheck → Enqueue → LogAppend → Reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import asyncpg

from shared.duplicates import DuplicateRegistry
from shared.errors import DuplicateError, NotFoundError, PersistenceError, SongQueueError
from shared.models.song_queue import QueueEntry, Track
from shared.repositories.song_queue import QueueLogRepository
from spotify.client import SpotifyClient
from spotify.utils import extract_track_id

LOGGER = logging.getLogger("SongRequests")


class RequestStatus(StrEnum):
    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    BLOCKED = "blocked"
    DUPLICATE = "duplicate"
    TOO_LONG = "too_long"
    FAILED = "failed"


@dataclass(frozen=True)
class SongRequestResult:
    """Terminal state of one request plus the chat reply for it."""

    status: RequestStatus
    message: str
    track: Track | None = None

    @property
    def accepted(self) -> bool:
        return self.status is RequestStatus.ACCEPTED


class BlockList(Protocol):
    async def is_blocked(self, channel_id: str, track_id: str, artist_ids: list[str]) -> bool: ...


def _format_seconds(total_seconds: int) -> str:
    hours, rest = divmod(max(total_seconds, 0), 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


class SongRequestService:
    """Turns a viewer's link or search text into a queued Spotify track.

    ``confirm_enqueue=False`` keeps the optimistic behaviour: the cooldown
    record and the queue log entry are kept even when Spotify rejects the
    enqueue. With ``True`` a failed enqueue forgets the record and skips the log.
    """

    def __init__(
        self,
        duplicates: DuplicateRegistry,
        queue_logs: QueueLogRepository,
        *,
        blocks: BlockList | None = None,
        max_song_length_ms: int = 0,
        confirm_enqueue: bool = False,
    ) -> None:
        self.duplicates = duplicates
        self.queue_logs = queue_logs
        self.blocks = blocks
        self.max_song_length_ms = max_song_length_ms
        self.confirm_enqueue = confirm_enqueue

    async def request(
        self,
        channel_id: str,
        client: SpotifyClient,
        user_name: str,
        raw_input: str,
    ) -> SongRequestResult:
        track = await self._resolve(client, raw_input.strip())
        if track is None:
            return SongRequestResult(RequestStatus.NOT_FOUND, f"@{user_name} nothing found on Spotify")

        if await self._is_blocked(channel_id, track):
            return SongRequestResult(
                RequestStatus.BLOCKED,
                f"@{user_name} {track.display_name} is blocked on this channel",
                track,
            )

        if self.max_song_length_ms and track.duration_ms > self.max_song_length_ms:
            limit = _format_seconds(self.max_song_length_ms // 1000)
            return SongRequestResult(
                RequestStatus.TOO_LONG,
                f"@{user_name} {track.display_name} is too long (max {limit})",
                track,
            )

        duplicates = self.duplicates.for_channel(channel_id)
        try:
            duplicates.check_and_record(track.id)
        except DuplicateError as e:
            wait = _format_seconds(e.remaining_seconds)
            return SongRequestResult(
                RequestStatus.DUPLICATE,
                f"@{user_name} {track.display_name} was played recently, try again in {wait}",
                track,
            )

        enqueue_error: SongQueueError | None = None
        try:
            await client.enqueue(track.id)
        except SongQueueError as e:
            enqueue_error = e
            LOGGER.warning(f"[{channel_id}] Enqueue failed for {track.id}: {e}")

        if enqueue_error is not None and self.confirm_enqueue:
            duplicates.forget(track.id)
            return SongRequestResult(
                RequestStatus.FAILED, f"@{user_name} could not add the track, try again later", track
            )

        await self._append_log(channel_id, track)

        if enqueue_error is not None:
            return SongRequestResult(
                RequestStatus.FAILED, f"@{user_name} could not add the track, try again later", track
            )

        LOGGER.info(f"[{channel_id}] {user_name} queued {track.display_name}")
        return SongRequestResult(
            RequestStatus.ACCEPTED, f"@{user_name} {track.display_name} added to the queue", track
        )

    async def skip(self, channel_id: str, client: SpotifyClient, user_name: str) -> str:
        """Skip the current track (skip-song reward)."""
        try:
            await client.skip()
        except SongQueueError as e:
            LOGGER.warning(f"[{channel_id}] Skip failed: {e}")
            return f"@{user_name} could not skip the track"
        LOGGER.info(f"[{channel_id}] {user_name} skipped the current track")
        return f"@{user_name} skipped the track on your request"

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------

    async def _resolve(self, client: SpotifyClient, query: str) -> Track | None:
        """Direct link → lookup by id; anything else → top search result."""
        if not query:
            return None
        track_id = extract_track_id(query)
        try:
            if track_id:
                return await client.get_by_id(track_id)
            results = await client.search(query, limit=1)
        except NotFoundError:
            return None
        except SongQueueError as e:
            LOGGER.warning(f"Resolving '{query}' failed: {e}")
            return None
        return results[0] if results else None

    async def _is_blocked(self, channel_id: str, track: Track) -> bool:
        if self.blocks is None:
            return False
        try:
            return await self.blocks.is_blocked(channel_id, track.id, track.artist_ids)
        except (asyncpg.PostgresError, OSError) as e:
            LOGGER.warning(f"[{channel_id}] Block list unavailable, accepting {track.id}: {e}")
            return False

    async def _append_log(self, channel_id: str, track: Track) -> None:
        if track.duration_ms <= 0:
            LOGGER.warning(f"[{channel_id}] Not logging {track.id}: unknown duration")
            return
        entry = QueueEntry(
            display_name=track.display_name,
            duration_ms=track.duration_ms,
            track_id=track.id,
        )
        try:
            await self.queue_logs.append(channel_id, entry)
        except PersistenceError as e:
            LOGGER.error(f"[{channel_id}] Queue log append failed: {e}")


class RedemptionAction(StrEnum):
    REQUEST = "request"
    SKIP = "skip"
    IGNORE = "ignore"


def route_redemption(
    reward_title: str,
    user_input: str,
    *,
    request_title: str,
    skip_title: str,
) -> RedemptionAction:
    """Pick what a channel-point redemption does from its reward title.

    Titles compare case-insensitively. Unknown rewards that carry text are
    treated as song requests.
    """
    title = reward_title.strip().casefold()
    if title == skip_title.strip().casefold():
        return RedemptionAction.SKIP
    if title == request_title.strip().casefold():
        return RedemptionAction.REQUEST
    if user_input.strip():
        return RedemptionAction.REQUEST
    return RedemptionAction.IGNORE
