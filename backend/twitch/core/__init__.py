"""Core modules for Twitch bot."""

from .config import (
    DATA_DIR,
    SongBotSettings,
    get_settings,
)
from .guards import has_role, is_privileged
from .health_server import HealthCheckServer
from .logging import setup_logging
from .subscriptions import get_channel_subscriptions

__all__ = [
    # Settings
    "SongBotSettings",
    "get_settings",
    # Path Constants
    "DATA_DIR",
    # Setup functions
    "setup_logging",
    # Services
    "HealthCheckServer",
    # Twitch specific
    "get_channel_subscriptions",
    # Guards
    "has_role",
    "is_privileged",
]
