"""
Supabase (PostgREST) record store
Hosted-table variant of the visit store, talking to the REST endpoint directly.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from .store import VISITS_TABLE, WRITABLE_COLUMNS, Filters, Order, RecordStore, check_columns, iter_filters
from .types import StoreError

logger = logging.getLogger(__name__)


class SupabaseRecordStore(RecordStore):
    """Record store backed by a Supabase project's PostgREST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Args:
            base_url: プロジェクトURL（例: https://xyz.supabase.co）
            api_key: service role キーまたは anon キー
            timeout: リクエストタイムアウト（秒）
            transport: テスト用に差し替えるトランスポート
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _params(self, table: str, filters: Optional[Filters]) -> List[tuple]:
        return [(column, f"{operator}.{value}") for column, operator, value in iter_filters(table, filters)]

    def _send(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, f"/{table}", **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"Request to {table} failed: {exc}", table=table) from exc
        if response.status_code >= 400:
            raise StoreError(self._extract_error(response), table=table)
        return response

    @staticmethod
    def _extract_error(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:200]}"
        if isinstance(payload, dict) and payload.get("message"):
            return f"HTTP {response.status_code}: {payload['message']}"
        return f"HTTP {response.status_code}"

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
        params = [("select", ",".join(fields)), *self._params(table, filters)]
        if order is not None:
            column, descending = order
            check_columns(table, [column])
            params.append(("order", f"{column}.{'desc' if descending else 'asc'}"))
        elif table == VISITS_TABLE:
            # Insertion order keeps offset paging stable across calls.
            params.append(("order", "id.asc"))
        params.extend([("offset", str(offset)), ("limit", str(limit))])
        response = self._send("GET", table, params=params)
        data = response.json()
        if not isinstance(data, list):
            raise StoreError(f"Unexpected payload from {table}", table=table)
        return data

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        check_columns(table, [])
        params = [("select", "*"), *self._params(table, filters)]
        response = self._send("HEAD", table, params=params, headers={"Prefer": "count=exact"})
        # Content-Range: 0-24/3573 or */0
        content_range = response.headers.get("content-range", "")
        _, _, total = content_range.partition("/")
        if not total.isdigit():
            raise StoreError(f"Missing exact count for {table}", table=table)
        return int(total)

    def append(self, table: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        check_columns(table, list(fields), WRITABLE_COLUMNS)
        response = self._send(
            "POST",
            table,
            json=[dict(fields)],
            headers={"Prefer": "return=representation"},
        )
        data = response.json()
        if not data:
            raise StoreError(f"Insert into {table} returned no rows", table=table)
        logger.debug("Appended %s row id=%s", table, data[0].get("id"))
        return data[0]
