"""Song request bot configuration"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
TWITCH_DIR = Path(__file__).parent.parent
BACKEND_DIR = TWITCH_DIR.parent
DATA_DIR = BACKEND_DIR / "data"


class SongBotSettings(BaseSettings):
    """Song request bot settings"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")

    # Bot Configuration
    bot_id: str = Field(..., description="Bot User ID")
    owner_id: str = Field(..., description="Owner User ID")

    # EventSub
    conduit_id: str = Field(default="", description="Twitch EventSub Conduit ID")

    # Spotify OAuth
    spotify_client_id: str = Field(..., description="Spotify OAuth Client ID")
    spotify_client_secret: str = Field(..., description="Spotify OAuth Client Secret")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # Queue log storage
    queue_store: Literal["file", "postgres"] = Field(
        default="file", description="Where queue logs are persisted"
    )
    data_dir: Path = Field(default=DATA_DIR / "queues", description="Queue log directory")
    queue_log_cap: int = Field(default=100, ge=1, description="Entries kept per channel")

    # Song requests
    duplicate_cooldown_seconds: float = Field(
        default=3600, ge=0, description="Cooldown before the same track can be requested again"
    )
    projection_ttl_seconds: float = Field(
        default=30, ge=0, description="How long a queue projection is reused"
    )
    max_song_length_seconds: int = Field(
        default=0, ge=0, description="Longest accepted track, 0 = unlimited"
    )
    confirm_enqueue: bool = Field(
        default=False, description="Only record requests Spotify actually accepted"
    )
    request_reward_title: str = Field(default="Request song", description="Request reward title")
    skip_reward_title: str = Field(default="Skip song", description="Skip reward title")

    # HTTP
    public_url: str = Field(default="", description="Public base URL of the HTTP server")
    http_port: int = Field(default=4344, description="HTTP server port")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith("postgresql://"):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> SongBotSettings:
    """Get cached settings instance"""
    return SongBotSettings()  # type: ignore[call-arg]
