"""Drain a paged record store into one complete dataset."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .store import Filters, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


def fetch_all(
    store: RecordStore,
    table: str,
    fields: Sequence[str],
    filters: Optional[Filters] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Dict[str, Any]]:
    """Fetch every row matching ``filters``.

    Pages are requested one after another until a short or empty page comes
    back. A :class:`StoreError` on any page propagates unchanged, so callers
    never aggregate over a partial dataset.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    records: List[Dict[str, Any]] = []
    page = 0
    while True:
        rows = store.fetch_page(
            table,
            fields,
            filters,
            offset=page * page_size,
            limit=page_size,
        )
        records.extend(rows)
        page += 1
        if len(rows) < page_size:
            break

    logger.debug("Fetched %d %s rows in %d pages", len(records), table, page)
    return records
