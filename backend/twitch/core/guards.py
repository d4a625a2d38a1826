"""Chatter role checks."""

from __future__ import annotations

# Role hierarchy (higher index = higher privilege)
ROLE_HIERARCHY = ["everyone", "subscriber", "vip", "moderator", "broadcaster"]


def has_role(chatter, min_role: str) -> bool:
    """Check if chatter meets the minimum role requirement."""
    if min_role == "everyone":
        return True

    min_level = ROLE_HIERARCHY.index(min_role) if min_role in ROLE_HIERARCHY else 0

    # Check from highest to lowest
    if chatter.broadcaster:
        return ROLE_HIERARCHY.index("broadcaster") >= min_level
    if chatter.moderator:
        return ROLE_HIERARCHY.index("moderator") >= min_level
    if chatter.vip:
        return ROLE_HIERARCHY.index("vip") >= min_level
    if chatter.subscriber:
        return ROLE_HIERARCHY.index("subscriber") >= min_level

    # everyone level
    return min_level == 0


def is_privileged(chatter) -> bool:
    """Moderators and the broadcaster may change playback settings."""
    return has_role(chatter, "moderator")
