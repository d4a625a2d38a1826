"""Shared data models for the song request services."""

from .block import BlockType, SongBlock
from .channel import Channel, SpotifyToken
from .song_queue import (
    CurrentlyPlaying,
    ProjectionItem,
    ProjectionSnapshot,
    QueueEntry,
    Track,
    format_eta,
)

__all__ = [
    "BlockType",
    "Channel",
    "CurrentlyPlaying",
    "ProjectionItem",
    "ProjectionSnapshot",
    "QueueEntry",
    "SongBlock",
    "SpotifyToken",
    "Track",
    "format_eta",
]
