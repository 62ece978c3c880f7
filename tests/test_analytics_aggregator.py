"""Tests for visit aggregation."""
import pytest

from backend.app.analytics.aggregator import group_by_path, page_stat, page_stats, summarize


def _row(path, visitor, created_at="2025-03-01T12:00:00"):
    return {"path": path, "ip_hash": visitor, "created_at": created_at}


class TestSummarize:
    def test_empty_dataset(self):
        summary = summarize([])
        assert summary.to_dict() == {"total_pv": 0, "total_uv": 0, "active_days": 0}

    def test_counts_views_visitors_and_days(self):
        rows = [
            _row("/a", "x", "2025-03-01T08:00:00"),
            _row("/a", "x", "2025-03-01T09:30:00"),
            _row("/b", "y", "2025-03-02T10:00:00"),
            _row("/c", "z", "2025-03-04T23:59:59"),
        ]
        assert summarize(rows).to_dict() == {"total_pv": 4, "total_uv": 3, "active_days": 3}

    @pytest.mark.parametrize(
        "created_at",
        ["2025-03-01T12:00:00", "2025-03-01 12:00:00", "2025-03-01T12:00:00+00:00", "2025-03-01"],
    )
    def test_date_part_before_time_separator(self, created_at):
        rows = [_row("/a", "x", "2025-03-01T00:00:01"), _row("/a", "y", created_at)]
        assert summarize(rows).active_days == 1


class TestPageStat:
    def test_single_path(self):
        rows = [_row("/a", "x"), _row("/a", "x"), _row("/a", "y"), _row("/b", "x")]
        assert page_stat(rows, "/a").to_dict() == {"path": "/a", "page_pv": 3, "page_uv": 2}

    def test_unknown_path_is_zero(self):
        assert page_stat([_row("/a", "x")], "/missing").to_dict() == {
            "path": "/missing",
            "page_pv": 0,
            "page_uv": 0,
        }


class TestPageStats:
    def test_sorted_by_page_views(self):
        rows = [_row("/a", "x"), _row("/a", "y"), _row("/b", "x")]
        assert [stat.to_dict() for stat in page_stats(rows)] == [
            {"path": "/a", "page_pv": 2, "page_uv": 2},
            {"path": "/b", "page_pv": 1, "page_uv": 1},
        ]

    def test_empty_dataset(self):
        assert page_stats([]) == []

    def test_ties_keep_first_seen_order(self):
        rows = [_row("/c", "x"), _row("/a", "x"), _row("/a", "y"), _row("/b", "z")]
        assert [stat.path for stat in page_stats(rows)] == ["/a", "/c", "/b"]

    def test_truncates_to_top_fifty(self):
        """60ページ各1PV → 先頭50件、初出順"""
        rows = [_row(f"/p{index}", "x") for index in range(60)]

        stats = page_stats(rows)

        assert len(stats) == 50
        assert [stat.path for stat in stats] == [f"/p{index}" for index in range(50)]
        assert all(stat.page_pv == 1 for stat in stats)

    def test_custom_limit(self):
        rows = [_row(f"/p{index}", "x") for index in range(5)]
        assert len(page_stats(rows, limit=3)) == 3


def test_group_by_path_preserves_first_appearance():
    rows = [_row("/b", "x"), _row("/a", "x"), _row("/b", "y"), _row("/b", "x")]

    groups = group_by_path(rows)

    assert list(groups) == ["/b", "/a"]
    assert groups["/b"] == (3, frozenset({"x", "y"}))
    assert groups["/a"] == (1, frozenset({"x"}))
