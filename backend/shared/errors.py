"""Error taxonomy shared by the Spotify client, queue log and request services."""

from __future__ import annotations


class SongQueueError(Exception):
    """Base class for every song-queue failure."""


class TransientAuthError(SongQueueError):
    """Access token expired or was rejected (HTTP 401).

    Recovered inside the Spotify client with one refresh + retry.
    """


class ProviderError(SongQueueError):
    """Any other failure reported by the playback provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ProviderError):
    """Lookup or search returned nothing."""


class DuplicateError(SongQueueError):
    """Track is still inside its cooldown window."""

    def __init__(self, track_id: str, remaining_seconds: int = 0) -> None:
        super().__init__(f"Track {track_id} was requested recently")
        self.track_id = track_id
        self.remaining_seconds = remaining_seconds


class PersistenceError(SongQueueError):
    """Queue log storage could not be read or written."""
