"""Spotify Web API access for the song request bot."""

from .client import Credential, RefreshingTransport, SpotifyClient
from .transport import SpotifyTransport, TokenRefreshResult
from .utils import clamp_volume, extract_track_id, track_uri

__all__ = [
    "Credential",
    "RefreshingTransport",
    "SpotifyClient",
    "SpotifyTransport",
    "TokenRefreshResult",
    "clamp_volume",
    "extract_track_id",
    "track_uri",
]
