"""
Redis-backed idempotency markers and derived caches.

Three key families share one Redis:

    event:processed:{eventId}            idempotency marker, long TTL
    stats:deals:dest:{destination}       DestinationStats JSON, short TTL
    cache:deals:active[:dest=..:max=..]  serialized deal lists, short TTL

Only the persistence worker writes markers and stats. The query-result
cache is written by the read path (storage.active_deals) and invalidated by
the worker on every new deal.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import redis

from tripstreamer.schemas.deals import DestinationStats, utcnow

if TYPE_CHECKING:
    from tripstreamer.core import DealStore

logger = logging.getLogger(__name__)

MARKER_PREFIX = "event:processed:"
STATS_PREFIX = "stats:deals:dest:"
ACTIVE_DEALS_KEY = "cache:deals:active"


def get_redis(url: str | None = None) -> redis.Redis:
    """Create a Redis client returning str values."""
    if url is None:
        from tripstreamer.config import get_settings

        url = get_settings().cache.redis_url
    return redis.Redis.from_url(url, decode_responses=True)


# ---------------------------------------------------------------------------
# IDEMPOTENCY MARKERS
# ---------------------------------------------------------------------------


class ProcessedMarkers:
    """
    Short-lived "already handled" markers keyed by event id.

    claim() is a single SET NX EX, so two worker processes racing on the
    same redelivered message cannot both see it as new. Markers expire
    after ``ttl_seconds``; deduplication only holds inside that window.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 86400):
        self._redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(event_id: str) -> str:
        return f"{MARKER_PREFIX}{event_id}"

    def claim(self, event_id: str) -> bool:
        """Set the marker if absent. Returns False when it was already set."""
        return bool(self._redis.set(self.key(event_id), "1", nx=True, ex=self.ttl_seconds))

    def is_processed(self, event_id: str) -> bool:
        return bool(self._redis.exists(self.key(event_id)))


# ---------------------------------------------------------------------------
# DESTINATION STATS
# ---------------------------------------------------------------------------


class StatsCache:
    """Per-destination deal counts, recomputed from the deal store."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 60):
        self._redis = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(destination: str) -> str:
        return f"{STATS_PREFIX}{destination}"

    def refresh(self, deal_store: DealStore, destination: str) -> DestinationStats:
        """Recount deals for a destination and cache the snapshot."""
        stats = DestinationStats(
            destination=destination,
            count=deal_store.count_by_destination(destination),
            updated_at=utcnow(),
        )
        self._redis.setex(
            self.key(destination),
            self.ttl_seconds,
            json.dumps(stats.model_dump(mode="json", by_alias=True)),
        )
        return stats

    def get(self, destination: str) -> DestinationStats | None:
        raw = self._redis.get(self.key(destination))
        if raw is None:
            return None
        return DestinationStats.model_validate_json(raw)


# ---------------------------------------------------------------------------
# QUERY RESULT CACHE
# ---------------------------------------------------------------------------


def _format_filter(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_cache_key(destination: str | None = None, max_price: float | None = None) -> str:
    """
    Deterministic cache key for an active-deals query.

    The unfiltered query maps to the bare sentinel key; any filter produces
    ``cache:deals:active:dest={destination|any}:max={maxPrice|any}``.
    """
    if not destination and max_price is None:
        return ACTIVE_DEALS_KEY

    dest = destination or "any"
    max_part = "any" if max_price is None else _format_filter(max_price)
    return f"{ACTIVE_DEALS_KEY}:dest={dest}:max={max_part}"


class QueryResultCache:
    """
    Cached active-deals query results.

    invalidate_all() removes the unfiltered entry AND every filtered variant,
    so no query is served a result computed before the latest write.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 20):
        self._redis = client
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> list[dict[str, Any]] | None:
        raw = self._redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def put(self, key: str, deals: list[dict[str, Any]]) -> bool:
        """Cache a result set. Empty results are never cached."""
        if not deals:
            return False
        self._redis.set(key, json.dumps(deals), ex=self.ttl_seconds)
        return True

    def invalidate_all(self) -> int:
        """Delete the unfiltered key and every filtered variant."""
        keys = [ACTIVE_DEALS_KEY]
        keys.extend(self._redis.scan_iter(match=f"{ACTIVE_DEALS_KEY}:*", count=100))
        return int(self._redis.delete(*keys))
