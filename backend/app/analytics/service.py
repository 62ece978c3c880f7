"""Aggregation engine API consumed by the HTTP layer."""
from __future__ import annotations

import copy
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from . import aggregator
from .cache import ResultCache
from .dedup import DedupGuard
from .pager import DEFAULT_PAGE_SIZE, fetch_all
from .store import DAILY_STATS_TABLE, VISITS_TABLE, RecordStore
from .types import (
    DEFAULT_DAYS,
    AggregateQuery,
    QueryKind,
    ValidationError,
    VisitOutcome,
    VisitRecord,
    format_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

PATH_PATTERN = re.compile(r"/[A-Za-z0-9\-_/]*")
MAX_PATH_LENGTH = 500
MAX_USER_AGENT_LENGTH = 500
RECENT_VISITS_LIMIT = 100
MAX_DAYS = 3650


def validate_path(path: Any) -> str:
    if path is None or path == "":
        raise ValidationError("Path is required")
    if not isinstance(path, str) or len(path) > MAX_PATH_LENGTH or not PATH_PATTERN.fullmatch(path):
        raise ValidationError("Invalid path format")
    return path


def normalize_days(days: Union[int, str, None]) -> int:
    if days is None or days == "":
        return DEFAULT_DAYS
    if isinstance(days, bool):
        raise ValidationError("days must be an integer")
    try:
        days = int(days)
    except (TypeError, ValueError):
        raise ValidationError("days must be an integer") from None
    if days < 1 or days > MAX_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_DAYS}")
    return days


class AnalyticsService:
    """Computes visit statistics over a record store, memoized by a result cache."""

    def __init__(
        self,
        store: RecordStore,
        cache: ResultCache,
        dedup: Optional[DedupGuard] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self._clock = clock or utc_now
        self.dedup = dedup or DedupGuard(store, clock=self._clock)
        self.page_size = page_size

    def _scan(self, fields: List[str], filters: Optional[dict] = None) -> List[Dict[str, Any]]:
        return fetch_all(self.store, VISITS_TABLE, fields, filters, page_size=self.page_size)

    def _cached(self, query: AggregateQuery, compute: Callable[[], Any]) -> Any:
        key = query.cache_key()
        cached = self.cache.get(key)
        if cached is not None:
            return copy.deepcopy(cached)
        value = compute()
        self.cache.put(key, value)
        return copy.deepcopy(value)

    def get_summary(self) -> Dict[str, int]:
        def compute() -> Dict[str, int]:
            rows = self._scan(["ip_hash", "created_at"])
            return aggregator.summarize(rows).to_dict()

        return self._cached(AggregateQuery(QueryKind.SUMMARY), compute)

    def get_daily_stats(self, days: Union[int, str, None] = None) -> List[Dict[str, Any]]:
        """Most recent ``days`` rows of the daily rollup, newest first."""
        days = normalize_days(days)
        return self.store.fetch_page(
            DAILY_STATS_TABLE,
            ["date", "pv", "uv"],
            offset=0,
            limit=days,
            order=("date", True),
        )

    def get_page_stats(self, path: Optional[str] = None) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        if path:
            path = validate_path(path)

            def compute_one() -> Dict[str, Any]:
                rows = self._scan(["path", "ip_hash"], {"eq": {"path": path}})
                return aggregator.page_stat(rows, path).to_dict()

            return self._cached(AggregateQuery(QueryKind.PAGE, path=path), compute_one)

        def compute_all() -> List[Dict[str, Any]]:
            rows = self._scan(["path", "ip_hash"])
            return [stat.to_dict() for stat in aggregator.page_stats(rows)]

        return self._cached(AggregateQuery(QueryKind.PAGE), compute_all)

    def get_recent_visits(self, days: Union[int, str, None] = None) -> List[Dict[str, Any]]:
        days = normalize_days(days)
        since = format_timestamp(self._clock() - timedelta(days=days))
        return self.store.fetch_page(
            VISITS_TABLE,
            ["path", "country", "created_at"],
            {"gte": {"created_at": since}},
            offset=0,
            limit=RECENT_VISITS_LIMIT,
            order=("created_at", True),
        )

    def record_visit(
        self,
        path: Any,
        visitor_hash: str,
        user_agent: str = "",
        referrer: Optional[str] = None,
        country: str = "Unknown",
    ) -> VisitOutcome:
        path = validate_path(path)
        if not visitor_hash:
            raise ValidationError("Visitor hash is required")
        if not self.dedup.should_record(path, visitor_hash):
            return VisitOutcome(recorded=False)
        record = VisitRecord(
            path=path,
            visitor_hash=visitor_hash,
            user_agent=(user_agent or "")[:MAX_USER_AGENT_LENGTH],
            referrer=referrer or None,
            country=country or "Unknown",
        )
        stored = self.store.append(VISITS_TABLE, record.to_row())
        logger.info("Recorded visit id=%s path=%s", stored.get("id"), path)
        return VisitOutcome(recorded=True, id=stored.get("id"))
