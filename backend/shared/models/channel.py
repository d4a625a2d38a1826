"""Data models for channel and Spotify token tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class SpotifyToken:
    """Spotify OAuth token record for one broadcaster channel."""

    channel_id: str
    access_token: str
    refresh_token: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Channel:
    """Twitch channel record."""

    channel_id: str
    channel_name: str
    enabled: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
