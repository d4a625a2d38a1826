"""Repository for channels, Twitch tokens and Spotify tokens tables, plus schema bootstrap."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.models.channel import Channel, SpotifyToken

logger = logging.getLogger(__name__)

# --- In-process caches ---
_spotify_token_cache = AsyncTTLCache(maxsize=64, ttl=300)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tokens (
        user_id    TEXT PRIMARY KEY,
        token      TEXT NOT NULL,
        refresh    TEXT NOT NULL,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS channels (
        channel_id   TEXT PRIMARY KEY,
        channel_name TEXT NOT NULL,
        enabled      BOOLEAN DEFAULT TRUE,
        created_at   TIMESTAMPTZ DEFAULT NOW(),
        updated_at   TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS spotify_tokens (
        channel_id    TEXT PRIMARY KEY,
        access_token  TEXT NOT NULL,
        refresh_token TEXT NOT NULL,
        created_at    TIMESTAMPTZ DEFAULT NOW(),
        updated_at    TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS song_blocks (
        id          BIGSERIAL PRIMARY KEY,
        channel_id  TEXT NOT NULL,
        block_type  TEXT NOT NULL CHECK (block_type IN ('artist', 'track')),
        spotify_id  TEXT NOT NULL,
        name        TEXT NOT NULL DEFAULT '',
        created_at  TIMESTAMPTZ DEFAULT NOW(),
        UNIQUE (channel_id, spotify_id)
    )
    """,
)


class ChannelRepository:
    """Pure SQL operations for Twitch tokens / channels."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_tables(self) -> None:
        async with self.pool.acquire() as conn:
            for statement in _SCHEMA:
                await conn.execute(statement)

    # ==================== Twitch Token Operations ====================

    async def list_tokens(self) -> list[tuple[str, str, str]]:
        """Return ``(user_id, token, refresh)`` for every stored Twitch token."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT user_id, token, refresh FROM tokens")
            return [(r["user_id"], r["token"], r["refresh"]) for r in rows]

    async def upsert_token(self, user_id: str, token: str, refresh: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO tokens (user_id, token, refresh)
                VALUES ($1, $2, $3)
                ON CONFLICT (user_id) DO UPDATE SET
                    token      = EXCLUDED.token,
                    refresh    = EXCLUDED.refresh,
                    updated_at = NOW()
                """,
                user_id,
                token,
                refresh,
            )

    # ==================== Channel Operations ====================

    async def list_enabled_channels(self) -> list[Channel]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT channel_id, channel_name, enabled, created_at, updated_at "
                "FROM channels WHERE enabled = TRUE"
            )
            return [Channel(**dict(r)) for r in rows]

    async def upsert_channel(self, channel_id: str, channel_name: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO channels (channel_id, channel_name, enabled)
                VALUES ($1, $2, TRUE)
                ON CONFLICT (channel_id) DO UPDATE SET
                    channel_name = EXCLUDED.channel_name,
                    updated_at   = NOW()
                """,
                channel_id,
                channel_name,
            )


class SpotifyTokenRepository:
    """Pure SQL operations for the spotify_tokens table.

    Tokens are written by the dashboard's OAuth flow; this service only reads
    them and stores refreshed access tokens.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(
        cache=_spotify_token_cache,
        key_func=lambda self, channel_id: f"spotify_token:{channel_id}",
    )
    async def get_token(self, channel_id: str) -> SpotifyToken | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT channel_id, access_token, refresh_token, created_at, updated_at "
                "FROM spotify_tokens WHERE channel_id = $1",
                channel_id,
            )
            return SpotifyToken(**dict(row)) if row else None

    async def update_tokens(
        self, channel_id: str, access_token: str, refresh_token: str | None = None
    ) -> None:
        """Store a refreshed access token; the refresh token only when it was rotated."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE spotify_tokens SET
                    access_token  = $2,
                    refresh_token = COALESCE($3, refresh_token),
                    updated_at    = NOW()
                WHERE channel_id = $1
                """,
                channel_id,
                access_token,
                refresh_token,
            )
        _spotify_token_cache.invalidate(f"spotify_token:{channel_id}")
        logger.info(f"Spotify token updated for channel {channel_id}")
