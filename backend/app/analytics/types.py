"""Type definitions for visit analytics."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
DEFAULT_DAYS = 30


class AnalyticsError(Exception):
    """Base class for errors raised by the aggregation engine."""


class ValidationError(AnalyticsError):
    """Raised when a request is malformed; the store is never touched."""


class StoreError(AnalyticsError):
    """Raised when the backing record store fails to read or write."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


class QueryKind(str, Enum):
    """統計の種類"""
    SUMMARY = "summary"
    DAILY = "daily"
    PAGE = "page"
    RECENT = "recent"


@dataclass(frozen=True)
class AggregateQuery:
    """A normalized statistics request, also used to derive cache keys."""
    kind: QueryKind
    days: int = DEFAULT_DAYS
    path: Optional[str] = None

    def cache_key(self) -> str:
        if self.kind == QueryKind.SUMMARY:
            return "summary_stats"
        if self.kind == QueryKind.PAGE:
            return f"page_stats_{self.path}" if self.path else "all_page_stats"
        if self.kind == QueryKind.DAILY:
            return f"daily_stats_{self.days}"
        return f"recent_visits_{self.days}"


@dataclass(frozen=True)
class VisitRecord:
    """One observed page load as stored in the ``visits`` table."""
    path: str
    visitor_hash: str
    user_agent: str = ""
    referrer: Optional[str] = None
    country: str = "Unknown"
    created_at: Optional[str] = None
    id: Optional[int] = None

    def to_row(self) -> dict:
        return {
            "path": self.path,
            "ip_hash": self.visitor_hash,
            "user_agent": self.user_agent,
            "referrer": self.referrer,
            "country": self.country,
        }


@dataclass(frozen=True)
class PageStat:
    path: str
    page_pv: int
    page_uv: int

    def to_dict(self) -> dict:
        return {"path": self.path, "page_pv": self.page_pv, "page_uv": self.page_uv}


@dataclass(frozen=True)
class Summary:
    total_pv: int
    total_uv: int
    active_days: int

    def to_dict(self) -> dict:
        return {
            "total_pv": self.total_pv,
            "total_uv": self.total_uv,
            "active_days": self.active_days,
        }


@dataclass(frozen=True)
class VisitOutcome:
    """Result of a recording request; ``recorded`` is False for a suppressed duplicate."""
    recorded: bool
    id: Optional[int] = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)
