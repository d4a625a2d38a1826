"""Per-channel Spotify clients plus the process-wide song request services."""

from __future__ import annotations

import asyncio
import logging

import httpx

from services.queue_projection import QueueProjectionService
from services.song_commands import SongCommandHandler
from services.song_request import SongRequestService
from shared.duplicates import DuplicateRegistry
from shared.repositories.channel import SpotifyTokenRepository
from shared.repositories.song_queue import QueueLogRepository
from spotify.client import SpotifyClient

logger = logging.getLogger(__name__)


class ChannelSessionManager:
    """Builds one SpotifyClient per channel on first use.

    Refreshed Spotify tokens are written back through the token repository;
    the client itself never touches the database.
    """

    def __init__(
        self,
        *,
        spotify_client_id: str,
        spotify_client_secret: str,
        tokens: SpotifyTokenRepository,
        duplicates: DuplicateRegistry,
        queue_logs: QueueLogRepository,
        projection: QueueProjectionService,
        requests: SongRequestService,
        commands: SongCommandHandler,
    ) -> None:
        self._spotify_client_id = spotify_client_id
        self._spotify_client_secret = spotify_client_secret
        self.tokens = tokens
        self.duplicates = duplicates
        self.queue_logs = queue_logs
        self.projection = projection
        self.requests = requests
        self.commands = commands

        self._http = httpx.AsyncClient(timeout=10.0)
        self._clients: dict[str, SpotifyClient] = {}
        self._lock = asyncio.Lock()

    async def get_client(self, channel_id: str) -> SpotifyClient | None:
        """Spotify client for the channel, or None when it has not linked Spotify."""
        client = self._clients.get(channel_id)
        if client is not None:
            return client

        async with self._lock:
            client = self._clients.get(channel_id)
            if client is not None:
                return client

            token = await self.tokens.get_token(channel_id)
            if token is None:
                logger.debug(f"No Spotify token for channel {channel_id}")
                return None

            client = SpotifyClient.create(
                client_id=self._spotify_client_id,
                client_secret=self._spotify_client_secret,
                access_token=token.access_token,
                refresh_token=token.refresh_token,
                http=self._http,
            )
            client.add_refresh_listener(self._persist_listener(channel_id))
            self._clients[channel_id] = client
            logger.info(f"Spotify client ready for channel {channel_id}")
            return client

    def _persist_listener(self, channel_id: str):
        async def persist(access_token: str, refresh_token: str | None) -> None:
            await self.tokens.update_tokens(channel_id, access_token, refresh_token)

        return persist

    async def remove_channel(self, channel_id: str) -> None:
        """Forget everything held for a channel, including its persisted queue log."""
        self._clients.pop(channel_id, None)
        self.duplicates.drop(channel_id)
        self.projection.invalidate(channel_id)
        await self.queue_logs.drop(channel_id)

    async def close(self) -> None:
        self._clients.clear()
        await self._http.aclose()
