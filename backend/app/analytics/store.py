"""Record store adapters for visit analytics."""
from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .types import StoreError, format_timestamp, utc_now

logger = logging.getLogger(__name__)

VISITS_TABLE = "visits"
DAILY_STATS_TABLE = "daily_stats"

# Columns readable per table. Anything else is rejected before SQL is built.
TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    VISITS_TABLE: ("id", "path", "ip_hash", "user_agent", "referrer", "country", "created_at"),
    DAILY_STATS_TABLE: ("date", "pv", "uv"),
}
WRITABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    VISITS_TABLE: ("path", "ip_hash", "user_agent", "referrer", "country"),
}
FILTER_OPERATORS = {"eq": "=", "gte": ">="}

Filters = Mapping[str, Mapping[str, Any]]
Order = Tuple[str, bool]


class RecordStore(ABC):
    """Paged, filtered access to a table of records.

    Implementations raise :class:`StoreError` on any backend fault and never
    retry; a page is either returned whole or not at all.
    """

    @abstractmethod
    def fetch_page(
        self,
        table: str,
        fields: Sequence[str],
        filters: Optional[Filters] = None,
        offset: int = 0,
        limit: int = 1000,
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        ...

    @abstractmethod
    def append(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        ...


def check_columns(table: str, columns: Sequence[str], allowed: Optional[Mapping[str, Tuple[str, ...]]] = None) -> None:
    allowed = TABLE_COLUMNS if allowed is None else allowed
    known = allowed.get(table)
    if known is None:
        raise StoreError(f"Unknown table: {table}", table=table)
    unknown = [column for column in columns if column not in known]
    if unknown:
        raise StoreError(f"Unknown columns for {table}: {', '.join(unknown)}", table=table)


def iter_filters(table: str, filters: Optional[Filters]) -> List[Tuple[str, str, Any]]:
    """Flatten ``{"eq": {"path": "/a"}}`` into ``[("path", "eq", "/a")]`` after validation."""
    flattened: List[Tuple[str, str, Any]] = []
    for operator, conditions in (filters or {}).items():
        if operator not in FILTER_OPERATORS:
            raise StoreError(f"Unsupported filter operator: {operator}", table=table)
        check_columns(table, list(conditions))
        for column, value in conditions.items():
            flattened.append((column, operator, value))
    return flattened


class SqliteRecordStore(RecordStore):
    """SQLite-backed storage for visit records."""

    def __init__(self, db_path: Path, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._initialize()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        try:
            with self._connect() as conn:
                conn.executescript(
                    """
                    PRAGMA journal_mode=WAL;
                    CREATE TABLE IF NOT EXISTS visits (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        path TEXT NOT NULL,
                        ip_hash TEXT NOT NULL,
                        user_agent TEXT NOT NULL DEFAULT '',
                        referrer TEXT,
                        country TEXT NOT NULL DEFAULT 'Unknown',
                        created_at TEXT NOT NULL
                    );
                    CREATE INDEX IF NOT EXISTS idx_visits_dedup ON visits(path, ip_hash, created_at);
                    CREATE INDEX IF NOT EXISTS idx_visits_created_at ON visits(created_at);
                    CREATE VIEW IF NOT EXISTS daily_stats AS
                        SELECT
                            substr(created_at, 1, 10) AS date,
                            COUNT(*) AS pv,
                            COUNT(DISTINCT ip_hash) AS uv
                        FROM visits
                        GROUP BY substr(created_at, 1, 10);
                    """
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to initialize {self._db_path}: {exc}") from exc

    def _where(self, table: str, filters: Optional[Filters]) -> Tuple[str, List[Any]]:
        clauses = []
        params: List[Any] = []
        for column, operator, value in iter_filters(table, filters):
            clauses.append(f"{column} {FILTER_OPERATORS[operator]} ?")
            params.append(value)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def fetch_page(
        self,
        table: str,
        fields: Sequence[str],
        filters: Optional[Filters] = None,
        offset: int = 0,
        limit: int = 1000,
        order: Optional[Order] = None,
    ) -> List[Dict[str, Any]]:
        check_columns(table, fields)
        where, params = self._where(table, filters)
        sql = f"SELECT {', '.join(fields)} FROM {table}{where}"
        if order is not None:
            column, descending = order
            check_columns(table, [column])
            sql += f" ORDER BY {column} {'DESC' if descending else 'ASC'}"
        elif table == VISITS_TABLE:
            # Insertion order keeps OFFSET paging stable across calls.
            sql += " ORDER BY id ASC"
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        try:
            with self._connect() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to fetch from {table}: {exc}", table=table) from exc
        return [dict(row) for row in rows]

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        check_columns(table, [])
        where, params = self._where(table, filters)
        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table}{where}", params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to count {table}: {exc}", table=table) from exc
        return row["cnt"] if row else 0

    def append(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        check_columns(table, list(fields), WRITABLE_COLUMNS)
        columns = list(fields) + ["created_at"]
        placeholders = ", ".join("?" for _ in columns)
        with self._lock:
            created_at = format_timestamp(self._clock())
            try:
                with self._connect() as conn:
                    cursor = conn.execute(
                        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                        [*fields.values(), created_at],
                    )
                    record_id = cursor.lastrowid or 0
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to append to {table}: {exc}", table=table) from exc
        logger.debug("Appended %s row id=%s", table, record_id)
        return {"id": record_id, **fields, "created_at": created_at}
