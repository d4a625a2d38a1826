"""Spotify helpers: track link parsing and volume normalisation."""

from __future__ import annotations

import math
import re

_TRACK_URL_RE = re.compile(r"https://open\.spotify\.com/(?:intl-[a-z]{2}/)?track/([0-9A-Za-z]+)(\?\S+)?")
_TRACK_URI_RE = re.compile(r"spotify:track:([0-9A-Za-z]+)")


def extract_track_id(text: str) -> str | None:
    """Extract a track id from a Spotify track link or ``spotify:track:`` URI."""
    m = _TRACK_URL_RE.search(text) or _TRACK_URI_RE.search(text)
    return m.group(1) if m else None


def track_uri(track_id: str) -> str:
    """Spotify URI for a track id; URIs are passed through unchanged."""
    if track_id.startswith("spotify:track:"):
        return track_id
    return f"spotify:track:{track_id}"


def clamp_volume(value: float | int | str) -> int:
    """Clamp to ``[0, 100]`` and round to the nearest whole percent (halves round up).

    Raises ValueError for anything that is not a number.
    """
    number = float(value)
    if math.isnan(number):
        raise ValueError("volume must be a number")
    number = min(max(number, 0.0), 100.0)
    return int(math.floor(number + 0.5))


def truncate_token(token: str) -> str:
    """Shorten a token for log output."""
    return f"{token[:8]}..." if len(token) > 8 else token
