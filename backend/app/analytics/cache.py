"""In-process TTL cache for computed statistics."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 100


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float


class ResultCache:
    """Per-key memoization with a fixed time-to-live.

    When a ``put`` leaves more than ``max_entries`` entries, every expired
    entry is swept. Live entries are never evicted, so the map can stay above
    ``max_entries`` until they expire.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at < self.ttl_seconds:
                return entry.value
            return None

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=now)
            if len(self._entries) > self.max_entries:
                self._sweep(now)

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if now - entry.stored_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        logger.debug("Swept %d expired cache entries, %d remain", len(expired), len(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
