"""Chat commands: !sq, !sc, !sr, !volume, !songhelp

Public:
    !sq             Queued requests with time until each one plays
    !sc             Current track
    !sr             Last 5 played tracks
    !songhelp       Command list

Moderator+:
    !volume <0-100> Set player volume

Unknown tokens return None and are left to other handlers.
"""

from __future__ import annotations

import logging

from services.queue_projection import QueueProjectionService
from shared.errors import SongQueueError
from spotify.client import SpotifyClient
from spotify.utils import clamp_volume

LOGGER = logging.getLogger("SongCommands")

QUEUE_PREVIEW_SIZE = 5
RECENT_COUNT = 5


class SongCommandHandler:
    def __init__(self, projection: QueueProjectionService, *, public_url: str = "") -> None:
        self.projection = projection
        self.public_url = public_url.rstrip("/")

    async def handle(
        self,
        channel_id: str,
        client: SpotifyClient,
        user_name: str,
        text: str,
        *,
        privileged: bool = False,
    ) -> str | None:
        """Return the reply for a chat message, or None when it is not a song command."""
        if not text or not text.startswith("!"):
            return None
        parts = text.split(maxsplit=1)
        command = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""

        try:
            if command == "!sq":
                return await self.queue(channel_id, client, user_name)
            if command == "!sc":
                return await self.current(client, user_name)
            if command == "!sr":
                return await self.recent(client, user_name)
            if command == "!volume":
                return await self.volume(client, user_name, args, privileged=privileged)
            if command == "!songhelp":
                return self.help(user_name)
        except SongQueueError as e:
            LOGGER.warning(f"[{channel_id}] {command} failed: {e}")
            return f"@{user_name} sorry, Spotify is not responding right now"
        return None

    async def queue(self, channel_id: str, client: SpotifyClient, user_name: str) -> str:
        snapshot = await self.projection.project(channel_id, client)
        if not snapshot.items:
            return f"@{user_name} the request queue is empty"

        preview = "; ".join(
            f"{item.display_name} ({item.formatted_eta})"
            for item in snapshot.items[:QUEUE_PREVIEW_SIZE]
        )
        if len(snapshot.items) > QUEUE_PREVIEW_SIZE and self.public_url:
            return f"@{user_name} current queue: {preview}. {self.public_url}/queue/{channel_id}"
        return f"@{user_name} current queue: {preview}"

    async def current(self, client: SpotifyClient, user_name: str) -> str:
        current = await client.currently_playing()
        if current is None:
            return f"@{user_name} nothing is playing right now"
        return f"@{user_name} now playing {current.track.display_name}"

    async def recent(self, client: SpotifyClient, user_name: str) -> str:
        tracks = await client.recently_played(RECENT_COUNT)
        if not tracks:
            return f"@{user_name} no tracks played yet"
        names = "; ".join(track.display_name for track in tracks)
        return f"@{user_name} recently played: {names}"

    async def volume(
        self, client: SpotifyClient, user_name: str, args: str, *, privileged: bool
    ) -> str | None:
        if not args:
            return None
        try:
            clamp_volume(args.split()[0])
        except ValueError:
            return None  # silent, nothing is sent to Spotify
        if not privileged:
            return f"@{user_name} only moderators and the broadcaster can change the volume"
        volume = await client.set_volume(args.split()[0])
        return f"@{user_name} volume set to {volume}%"

    def help(self, user_name: str) -> str:
        return (
            f"@{user_name} song commands: !sq - request queue with wait times; "
            "!sc - current track; !sr - recently played tracks; "
            "!volume <0-100> - set volume (mods)"
        )
