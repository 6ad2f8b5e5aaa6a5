"""
Storage module - deal persistence, idempotency markers and caches.
"""

from tripstreamer.storage.deals import (
    DealStoreConfig,
    PgDealStore,
    InMemoryDealStore,
    get_deal_store,
)
from tripstreamer.storage.cache import (
    ACTIVE_DEALS_KEY,
    ProcessedMarkers,
    QueryResultCache,
    StatsCache,
    build_cache_key,
    get_redis,
)
from tripstreamer.storage.active_deals import get_active_deals

__all__ = [
    # Deals
    "DealStoreConfig",
    "PgDealStore",
    "InMemoryDealStore",
    "get_deal_store",
    # Caches
    "ACTIVE_DEALS_KEY",
    "ProcessedMarkers",
    "QueryResultCache",
    "StatsCache",
    "build_cache_key",
    "get_redis",
    # Read path
    "get_active_deals",
]
