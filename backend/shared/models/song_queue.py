"""Data models for Spotify tracks, the per-channel queue log and ETA projections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Track:
    """Spotify track descriptor."""

    id: str
    uri: str
    name: str
    artists: list[str] = field(default_factory=list)
    artist_ids: list[str] = field(default_factory=list)
    duration_ms: int = 0
    image: str | None = None

    @property
    def display_name(self) -> str:
        """``"Artist & Artist - Title"``, the name shown in chat."""
        return f"{' & '.join(self.artists)} - {self.name}"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Track:
        images = (data.get("album") or {}).get("images") or []
        artists = data.get("artists") or []
        return cls(
            id=data.get("id") or "",
            uri=data.get("uri") or "",
            name=data.get("name") or "",
            artists=[a.get("name", "") for a in artists],
            artist_ids=[a["id"] for a in artists if a.get("id")],
            duration_ms=int(data.get("duration_ms") or 0),
            image=images[0].get("url") if images else None,
        )


@dataclass(frozen=True)
class CurrentlyPlaying:
    """Live playback state of the broadcaster's player."""

    track: Track
    progress_ms: int
    duration_ms: int

    @property
    def time_left_ms(self) -> int:
        # Clock skew can push progress past the end of the track
        return max(self.duration_ms - self.progress_ms, 0)


@dataclass(frozen=True)
class QueueEntry:
    """One accepted request in a channel's queue log."""

    display_name: str
    duration_ms: int
    track_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "displayName": self.display_name,
            "durationMs": self.duration_ms,
            "trackId": self.track_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueEntry:
        """Parse the persisted shape. Raises KeyError/TypeError/ValueError on bad data."""
        duration = int(data["durationMs"])
        if duration <= 0:
            raise ValueError(f"durationMs must be positive, got {duration}")
        return cls(
            display_name=str(data["displayName"]),
            duration_ms=duration,
            track_id=str(data["trackId"]),
        )


def format_eta(ms: int) -> str:
    """Format milliseconds as ``mm:ss``, truncating to whole seconds."""
    total_seconds = max(ms, 0) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class ProjectionItem:
    """Projected wait time for one queued entry."""

    display_name: str
    eta_ms: int

    @property
    def formatted_eta(self) -> str:
        return format_eta(self.eta_ms)


@dataclass(frozen=True)
class ProjectionSnapshot:
    """Per-channel ETA projection, memoized for a short TTL."""

    computed_at: datetime
    items: list[ProjectionItem] = field(default_factory=list)
    now_playing: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "computed_at": self.computed_at.isoformat(),
            "now_playing": self.now_playing,
            "items": [
                {
                    "display_name": item.display_name,
                    "eta_ms": item.eta_ms,
                    "eta": item.formatted_eta,
                }
                for item in self.items
            ],
        }
