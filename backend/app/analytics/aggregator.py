"""Pure aggregation over materialized visit rows.

Rows are plain mappings with at least ``path``, ``ip_hash`` and, for the
summary, ``created_at``. Nothing here touches a store.
"""
from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .types import PageStat, Summary

TOP_PAGES_LIMIT = 50

Row = Mapping[str, Any]
# path -> (page views, distinct visitor hashes)
PathGroups = Dict[str, Tuple[int, FrozenSet[str]]]


def _date_part(created_at: str) -> str:
    """Return the calendar date of a timestamp (the text before ``T`` or a space)."""
    for separator in ("T", " "):
        if separator in created_at:
            return created_at.split(separator, 1)[0]
    return created_at


def summarize(rows: Iterable[Row]) -> Summary:
    total_pv = 0
    visitors = set()
    days = set()
    for row in rows:
        total_pv += 1
        visitors.add(row["ip_hash"])
        days.add(_date_part(str(row["created_at"])))
    return Summary(total_pv=total_pv, total_uv=len(visitors), active_days=len(days))


def page_stat(rows: Iterable[Row], path: str) -> PageStat:
    matching = [row for row in rows if row["path"] == path]
    return PageStat(
        path=path,
        page_pv=len(matching),
        page_uv=len({row["ip_hash"] for row in matching}),
    )


def group_by_path(rows: Iterable[Row]) -> PathGroups:
    """Fold rows into ``{path: (views, visitors)}`` ordered by first appearance."""
    views: Dict[str, int] = {}
    visitors: Dict[str, Set[str]] = {}
    for row in rows:
        path = row["path"]
        views[path] = views.get(path, 0) + 1
        visitors.setdefault(path, set()).add(row["ip_hash"])
    return {path: (count, frozenset(visitors[path])) for path, count in views.items()}


def page_stats(rows: Iterable[Row], limit: int = TOP_PAGES_LIMIT) -> List[PageStat]:
    """Per-path rollups, most viewed first; equal counts keep first-seen order."""
    stats = [
        PageStat(path=path, page_pv=views, page_uv=len(visitors))
        for path, (views, visitors) in group_by_path(rows).items()
    ]
    stats.sort(key=lambda stat: stat.page_pv, reverse=True)
    return stats[:limit]
