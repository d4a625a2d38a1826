"""Per-channel duplicate suppression for song requests.

A track that was requested once is suppressed for a fixed cooldown window.
Expired records are removed lazily on the next check. There is no background
sweep; tracks recorded but never checked again stay in memory until the
process restarts.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from shared.errors import DuplicateError

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60 * 60


class DuplicateStore:
    """Cooldown records for one channel, keyed by track id."""

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._records: dict[str, float] = {}

    def record(self, track_id: str) -> None:
        """Start a cooldown window. An existing record keeps its original timestamp."""
        if track_id not in self._records:
            self._records[track_id] = self._clock()

    def is_suppressed(self, track_id: str) -> bool:
        """True while inside the window; an elapsed record is removed and False returned."""
        inserted_at = self._records.get(track_id)
        if inserted_at is None:
            return False
        if self._clock() - inserted_at < self.cooldown_seconds:
            return True
        del self._records[track_id]
        return False

    def remaining(self, track_id: str) -> int:
        """Whole seconds left in the window, 0 when absent or elapsed. Never mutates."""
        inserted_at = self._records.get(track_id)
        if inserted_at is None:
            return 0
        left = self.cooldown_seconds - (self._clock() - inserted_at)
        return int(left) if left > 0 else 0

    def check_and_record(self, track_id: str) -> None:
        """Record *track_id*, or raise DuplicateError while it is still cooling down.

        Check and record happen without yielding to the event loop.
        """
        if self.is_suppressed(track_id):
            raise DuplicateError(track_id, self.remaining(track_id))
        self.record(track_id)

    def forget(self, track_id: str) -> None:
        self._records.pop(track_id, None)

    def __len__(self) -> int:
        return len(self._records)


class DuplicateRegistry:
    """One :class:`DuplicateStore` per broadcaster channel.

    Instantiate once per process and pass it to the services that need it.
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._stores: dict[str, DuplicateStore] = {}

    def for_channel(self, channel_id: str) -> DuplicateStore:
        store = self._stores.get(channel_id)
        if store is None:
            store = DuplicateStore(self.cooldown_seconds, self._clock)
            self._stores[channel_id] = store
        return store

    def drop(self, channel_id: str) -> None:
        if self._stores.pop(channel_id, None) is not None:
            logger.debug(f"Dropped duplicate records for channel {channel_id}")
