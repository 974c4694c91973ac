"""
Service layer for dashboard statistics.

Statistics are recomputed from a full scan of the stored initiatives on
every call; nothing is cached or maintained incrementally.  The scan
works on the raw documents instead of validated models so a single
malformed record cannot fail the whole aggregation:

* non-numeric or negative ``beneficiaries``/``budget`` count as 0;
* statuses other than ``active`` and ``completed`` only count toward
  the total;
* records without a category are left out of the category mapping.

The scan is O(n) per request, which is fine for a few thousand
records.  Past that, maintain counters alongside each write instead.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from starlette.concurrency import run_in_threadpool

from ..core.kv_store import KeyValueStore
from ..schemas.initiative import coerce_non_negative_int
from ..schemas.statistics import Statistics
from .initiative_service import INITIATIVE_PREFIX


logger = logging.getLogger(__name__)


def aggregate(documents: Iterable[Dict[str, Any]]) -> Statistics:
    """Fold initiative documents into a ``Statistics`` snapshot."""
    stats = Statistics()
    for doc in documents:
        stats.total_initiatives += 1
        status = doc.get("status")
        if status == "active":
            stats.active_initiatives += 1
        elif status == "completed":
            stats.completed_initiatives += 1
        stats.total_beneficiaries += coerce_non_negative_int(doc.get("beneficiaries"))
        stats.total_budget += coerce_non_negative_int(doc.get("budget"))
        category = doc.get("category")
        if isinstance(category, str) and category:
            stats.category_counts[category] = stats.category_counts.get(category, 0) + 1
    return stats


class StatisticsService:
    """Aggregated metrics over all initiatives."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def compute_statistics(self) -> Statistics:
        documents = await run_in_threadpool(self.store.get_by_prefix, INITIATIVE_PREFIX)
        stats = aggregate(documents)
        logger.debug("Computed statistics over %s initiatives", stats.total_initiatives)
        return stats
