"""Song request services shared by the Twitch bot and its HTTP server."""

from .channel_sessions import ChannelSessionManager
from .queue_projection import QueueProjectionService, project_entries
from .song_commands import SongCommandHandler
from .song_request import (
    RedemptionAction,
    RequestStatus,
    SongRequestResult,
    SongRequestService,
    route_redemption,
)

__all__ = [
    "ChannelSessionManager",
    "QueueProjectionService",
    "RedemptionAction",
    "RequestStatus",
    "SongCommandHandler",
    "SongRequestResult",
    "SongRequestService",
    "project_entries",
    "route_redemption",
]
