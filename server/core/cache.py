"""In-process TTL cache for read results.

Entries are checked for freshness on every lookup and swept opportunistically
by the dispatcher before each dispatch cycle. There is no background timer.
"""

import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from constants import DEFAULT_CACHE_TTL
from core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A stored result. Replaced or deleted, never mutated."""
    key: str
    value: Any
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class QueryCache:
    """Keyed TTL store owned by a single dispatcher.

    Reads do not refresh ``stored_at`` (no sliding expiration). Values are
    deep-copied in and out so callers never alias cache-owned data.
    """

    def __init__(self, default_ttl: float = DEFAULT_CACHE_TTL,
                 clock: Callable[[], float] = time.monotonic):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be > 0")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the stored value if still fresh, otherwise None.

        A stale entry is evicted on the spot.
        """
        entry = self._entries.get(key)
        if entry is None:
            log_cache_operation(logger, "get", key, hit=False)
            return None

        if not entry.is_fresh(self._clock()):
            del self._entries[key]
            log_cache_operation(logger, "get", key, hit=False, expired=True)
            return None

        log_cache_operation(logger, "get", key, hit=True)
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key, replacing any previous entry."""
        if value is None:
            raise ValueError("Cannot cache None; absence is reported as None")
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be > 0")

        self._entries[key] = CacheEntry(
            key=key,
            value=copy.deepcopy(value),
            stored_at=self._clock(),
            ttl=ttl,
        )
        log_cache_operation(logger, "set", key, ttl=ttl)

    def delete(self, key: str) -> bool:
        deleted = self._entries.pop(key, None) is not None
        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    def sweep(self) -> int:
        """Remove every entry whose age reached its TTL.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Cache sweep", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_fresh(self._clock())
