"""In-process TTL cache for song request services.

Uses cachetools.TTLCache for zero-infrastructure caching.
Each service creates its own cache instances; nothing is shared across processes.

Entries are never invalidated by writes elsewhere in the system; they only
expire when their TTL runs out (or when a caller invalidates explicitly).
"""

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Sentinel object to distinguish "not in cache" from cached None values
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


class AsyncTTLCache:
    """Async-aware TTL cache with per-key compute locks.

    ``timer`` is passed straight to ``TTLCache`` so tests can drive expiry
    with a fake clock.
    """

    def __init__(
        self,
        maxsize: int = 128,
        ttl: float = 60.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._locks: dict[str, asyncio.Lock] = {}

    # --- lock management (bounded) ---

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            # Prune idle locks whose entries already expired
            if len(self._locks) > self._maxsize * 2:
                for k in list(self._locks):
                    if k not in self._cache and not self._locks[k].locked():
                        del self._locks[k]
        return self._locks[key]

    # --- primary operations ---

    def get(self, key: str) -> Any:
        """Return fresh value or ``_MISSING``."""
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    async def get_or_compute(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for *key*, computing it at most once per TTL.

        Concurrent misses for the same key wait on one computation.
        Exceptions from *factory* propagate and nothing is cached.
        """
        result = self.get(key)
        if result is not _MISSING:
            return result

        async with self._get_lock(key):
            result = self.get(key)
            if result is not _MISSING:
                return result
            result = await factory()
            self.set(key, result)
            return result


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    retry: int = 3,
    retry_delay: float = 1.0,
):
    """Decorator for caching async repository reads with DB retry.

    Parameters
    ----------
    cache : AsyncTTLCache
        The cache instance to use.
    key_func : callable
        Receives the same ``(*args, **kwargs)`` as the decorated function
        and returns the cache key string.
    retry : int
        Max number of attempts on DB failure (default 3).
    retry_delay : float
        Base delay in seconds; attempt *n* waits ``retry_delay * n``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key_func(*args, **kwargs)

            async def load() -> Any:
                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    try:
                        return await func(*args, **kwargs)
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            delay = retry_delay * attempt
                            logger.warning(
                                "DB attempt %d/%d failed for %s: %s, retrying in %.1fs…",
                                attempt,
                                retry,
                                cache_key,
                                type(exc).__name__,
                                delay,
                            )
                            await asyncio.sleep(delay)
                raise last_exc  # type: ignore[misc]

            return await cache.get_or_compute(cache_key, load)

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
