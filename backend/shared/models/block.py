"""Data model for the per-channel song block list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class BlockType(StrEnum):
    ARTIST = "artist"
    TRACK = "track"


@dataclass
class SongBlock:
    """A Spotify track or artist the broadcaster does not accept requests for."""

    channel_id: str
    block_type: BlockType
    spotify_id: str
    name: str = ""
    created_at: datetime | None = None
