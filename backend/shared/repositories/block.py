"""Repository for the song_blocks table."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.models.block import BlockType, SongBlock

logger = logging.getLogger(__name__)

_block_cache = AsyncTTLCache(maxsize=128, ttl=60)


class BlockRepository:
    """Pure SQL reads of the song_blocks table.

    Blocks are managed from the dashboard; the bot only checks requests
    against them.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @cached(
        cache=_block_cache,
        key_func=lambda self, channel_id: f"song_blocks:{channel_id}",
    )
    async def get_blocks(self, channel_id: str) -> list[SongBlock]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT channel_id, block_type, spotify_id, name, created_at "
                "FROM song_blocks WHERE channel_id = $1",
                channel_id,
            )
        blocks = []
        for r in rows:
            try:
                block_type = BlockType(r["block_type"])
            except ValueError:
                logger.warning(f"Ignoring block with unknown type {r['block_type']!r}")
                continue
            blocks.append(
                SongBlock(
                    channel_id=r["channel_id"],
                    block_type=block_type,
                    spotify_id=r["spotify_id"],
                    name=r["name"] or "",
                    created_at=r["created_at"],
                )
            )
        return blocks

    async def is_blocked(self, channel_id: str, track_id: str, artist_ids: list[str]) -> bool:
        """True when the track itself or any of its artists is blocked."""
        for block in await self.get_blocks(channel_id):
            if block.block_type is BlockType.TRACK and block.spotify_id == track_id:
                return True
            if block.block_type is BlockType.ARTIST and block.spotify_id in artist_ids:
                return True
        return False
