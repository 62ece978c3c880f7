"""Tests for the Supabase (PostgREST) record store."""
import json

import httpx
import pytest

from backend.app.analytics.supabase_store import SupabaseRecordStore
from backend.app.analytics.types import StoreError


def _store(handler):
    return SupabaseRecordStore("https://demo.supabase.co/", "secret-key", transport=httpx.MockTransport(handler))


class TestSupabaseRecordStore:
    def test_fetch_page_builds_postgrest_query(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=[{"path": "/a", "ip_hash": "x"}])

        rows = _store(handler).fetch_page(
            "visits",
            ["path", "ip_hash"],
            {"eq": {"path": "/a"}, "gte": {"created_at": "2025-03-01T12:00:00"}},
            offset=2000,
            limit=1000,
            order=("created_at", True),
        )

        request = seen["request"]
        assert rows == [{"path": "/a", "ip_hash": "x"}]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/visits"
        assert request.url.params["select"] == "path,ip_hash"
        assert request.url.params["path"] == "eq./a"
        assert request.url.params["created_at"] == "gte.2025-03-01T12:00:00"
        assert request.url.params["order"] == "created_at.desc"
        assert request.url.params["offset"] == "2000"
        assert request.url.params["limit"] == "1000"
        assert request.headers["apikey"] == "secret-key"
        assert request.headers["authorization"] == "Bearer secret-key"

    def test_visits_default_to_insertion_order(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=[])

        _store(handler).fetch_page("visits", ["path", "ip_hash"], offset=1000, limit=1000)

        params = seen["request"].url.params
        assert params["order"] == "id.asc"
        assert params["offset"] == "1000"

    def test_daily_stats_without_order_sends_none(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=[])

        _store(handler).fetch_page("daily_stats", ["date", "pv", "uv"])

        assert "order" not in seen["request"].url.params

    def test_count_reads_content_range(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, headers={"Content-Range": "0-0/42"})

        total = _store(handler).count("visits", {"eq": {"path": "/a"}})

        assert total == 42
        assert seen["request"].method == "HEAD"
        assert seen["request"].headers["prefer"] == "count=exact"

    def test_count_of_empty_table(self):
        store = _store(lambda request: httpx.Response(200, headers={"Content-Range": "*/0"}))
        assert store.count("visits") == 0

    def test_count_without_range_header(self):
        store = _store(lambda request: httpx.Response(200))
        with pytest.raises(StoreError):
            store.count("visits")

    def test_append_returns_representation(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            body = json.loads(request.content)
            return httpx.Response(201, json=[{"id": 7, **body[0], "created_at": "2025-03-01T12:00:00+00:00"}])

        row = _store(handler).append("visits", {"path": "/a", "ip_hash": "x", "country": "JP"})

        assert row["id"] == 7
        assert row["created_at"] == "2025-03-01T12:00:00+00:00"
        assert seen["request"].method == "POST"
        assert seen["request"].headers["prefer"] == "return=representation"

    def test_http_error_status(self):
        store = _store(lambda request: httpx.Response(500, json={"message": "database is down"}))

        with pytest.raises(StoreError, match="database is down"):
            store.fetch_page("visits", ["path"])

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreError):
            _store(handler).append("visits", {"path": "/a", "ip_hash": "x"})

    def test_unknown_column_rejected_before_request(self):
        def handler(request):
            raise AssertionError("request should not be sent")

        with pytest.raises(StoreError):
            _store(handler).fetch_page("visits", ["secret"])
