"""Shared repository layer for the song request services."""

from .block import BlockRepository
from .channel import ChannelRepository, SpotifyTokenRepository
from .song_queue import (
    JsonFileQueueLogStore,
    PostgresQueueLogStore,
    QueueLog,
    QueueLogRepository,
    QueueLogStore,
)

__all__ = [
    "BlockRepository",
    "ChannelRepository",
    "JsonFileQueueLogStore",
    "PostgresQueueLogStore",
    "QueueLog",
    "QueueLogRepository",
    "QueueLogStore",
    "SpotifyTokenRepository",
]
