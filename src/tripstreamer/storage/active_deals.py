"""
Read-through path for the active-deals query.

This is the cache contract the GraphQL backend relies on: look up the
filter-derived key, fall back to the deal store on a miss, and cache
non-empty results. The persistence worker owns the other half (invalidation).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tripstreamer.schemas.deals import DealSort
from tripstreamer.storage.cache import QueryResultCache, build_cache_key

if TYPE_CHECKING:
    from tripstreamer.core import DealStore

logger = logging.getLogger(__name__)


def get_active_deals(
    deal_store: DealStore,
    cache: QueryResultCache,
    destination: str | None = None,
    max_price: float | None = None,
    sort_by: DealSort | None = None,
) -> list[dict[str, Any]]:
    """Return active deals as wire dicts, served from cache when possible."""
    key = build_cache_key(destination, max_price)
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"Cache hit for {key}")
        return cached

    deals = [
        deal.to_wire()
        for deal in deal_store.fetch_deals(
            destination=destination,
            max_price=max_price,
            sort_by=sort_by or DealSort.NEWEST,
        )
    ]
    cache.put(key, deals)
    return deals
