"""Resilient Spotify playback client.

RefreshingTransport wraps SpotifyTransport with the token policy:

    attempt with current access token
      -> 401? refresh once -> retry once
      -> anything else (or a second 401) propagates

SpotifyClient exposes the playback operations the bot needs on top of it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from shared.errors import NotFoundError, TransientAuthError
from shared.models.song_queue import CurrentlyPlaying, Track
from spotify.transport import SpotifyTransport, TokenRefreshResult
from spotify.utils import clamp_volume, track_uri, truncate_token

logger = logging.getLogger(__name__)

# Receives (access_token, rotated_refresh_token_or_None)
RefreshListener = Callable[[str, str | None], Awaitable[None]]


@dataclass
class Credential:
    """Spotify access/refresh token pair, mutated in place on refresh."""

    access_token: str
    refresh_token: str


class RefreshingTransport:
    """Retry-once-on-401 decorator around :class:`SpotifyTransport`."""

    def __init__(self, transport: SpotifyTransport, credential: Credential) -> None:
        self.transport = transport
        self.credential = credential
        self._listeners: list[RefreshListener] = []
        self._refresh_lock = asyncio.Lock()

    def add_refresh_listener(self, listener: RefreshListener) -> None:
        self._listeners.append(listener)

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        token = self.credential.access_token
        try:
            return await self.transport.request(method, path, token=token, **kwargs)
        except TransientAuthError as exc:
            expired = exc

        logger.info(f"Spotify rejected token {truncate_token(token)}, refreshing…")
        try:
            await self._refresh(token)
        except TransientAuthError as e:
            raise e from expired

        return await self.transport.request(
            method, path, token=self.credential.access_token, **kwargs
        )

    async def _refresh(self, stale_token: str) -> None:
        async with self._refresh_lock:
            # Another request already replaced the token while we waited
            if self.credential.access_token != stale_token:
                return
            result = await self.transport.refresh(self.credential.refresh_token)
            self.credential.access_token = result.access_token
            if result.refresh_token:
                self.credential.refresh_token = result.refresh_token

        logger.info(f"Spotify token refreshed: {truncate_token(result.access_token)}")
        await self._emit(result)

    async def _emit(self, result: TokenRefreshResult) -> None:
        for listener in self._listeners:
            try:
                await listener(result.access_token, result.refresh_token)
            except Exception as e:
                logger.exception(f"Token refresh listener failed: {e}")


class SpotifyClient:
    """Playback operations for one broadcaster's Spotify account."""

    def __init__(self, transport: RefreshingTransport) -> None:
        self._transport = transport

    @classmethod
    def create(
        cls,
        *,
        client_id: str,
        client_secret: str,
        access_token: str,
        refresh_token: str,
        http: httpx.AsyncClient | None = None,
    ) -> SpotifyClient:
        raw = SpotifyTransport(client_id, client_secret, http=http)
        return cls(RefreshingTransport(raw, Credential(access_token, refresh_token)))

    @property
    def credential(self) -> Credential:
        return self._transport.credential

    def add_refresh_listener(self, listener: RefreshListener) -> None:
        self._transport.add_refresh_listener(listener)

    async def close(self) -> None:
        await self._transport.transport.close()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def search(self, query: str, limit: int = 5) -> list[Track]:
        """Tracks matching *query*, best match first."""
        data = await self._transport.request(
            "GET", "search", params={"q": query, "type": "track", "limit": limit}
        )
        items = ((data or {}).get("tracks") or {}).get("items") or []
        return [Track.from_api(item) for item in items if item]

    async def get_by_id(self, track_id: str) -> Track:
        data = await self._transport.request("GET", f"tracks/{track_id}")
        if not data or not data.get("uri"):
            raise NotFoundError(f"Track {track_id} not found", status_code=404)
        return Track.from_api(data)

    # ------------------------------------------------------------------
    # Player
    # ------------------------------------------------------------------

    async def enqueue(self, track_id: str) -> None:
        uri = track_uri(track_id)
        logger.debug(f"Enqueueing {uri}")
        await self._transport.request("POST", "me/player/queue", params={"uri": uri})

    async def currently_playing(self) -> CurrentlyPlaying | None:
        """Current track with position, or None when nothing (or no track) is playing."""
        data = await self._transport.request("GET", "me/player/currently-playing")
        if not data:
            return None
        item = data.get("item")
        if not item or item.get("type", "track") != "track":
            return None
        track = Track.from_api(item)
        return CurrentlyPlaying(
            track=track,
            progress_ms=int(data.get("progress_ms") or 0),
            duration_ms=track.duration_ms,
        )

    async def recently_played(self, limit: int = 5) -> list[Track]:
        """Most recently played tracks, newest first."""
        limit = min(max(limit, 1), 50)
        data = await self._transport.request(
            "GET", "me/player/recently-played", params={"limit": limit}
        )
        items = (data or {}).get("items") or []
        return [Track.from_api(item["track"]) for item in items if item.get("track")][:limit]

    async def skip(self) -> None:
        await self._transport.request("POST", "me/player/next")

    async def set_volume(self, percent: float | int | str) -> int:
        """Set player volume. Returns the value actually sent.

        Raises ValueError (before any request) when *percent* is not a number.
        """
        volume = clamp_volume(percent)
        await self._transport.request(
            "PUT", "me/player/volume", params={"volume_percent": volume}
        )
        logger.info(f"Spotify volume set to {volume}%")
        return volume
