"""Suppress repeat visits from the same visitor within a trailing window."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .store import VISITS_TABLE, RecordStore
from .types import format_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(minutes=5)


class DedupGuard:
    """Decides whether a ``(path, visitor)`` pair should be recorded.

    The check and the later insert are separate store calls; two requests
    racing inside the window can both pass and leave two records.
    """

    def __init__(
        self,
        store: RecordStore,
        window: timedelta = DEFAULT_WINDOW,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._window = window
        self._clock = clock or utc_now

    def should_record(self, path: str, visitor_hash: str) -> bool:
        since = format_timestamp(self._clock() - self._window)
        recent = self._store.count(
            VISITS_TABLE,
            {
                "eq": {"path": path, "ip_hash": visitor_hash},
                "gte": {"created_at": since},
            },
        )
        if recent:
            logger.debug("Duplicate visit suppressed for %s since %s", path, since)
            return False
        return True
