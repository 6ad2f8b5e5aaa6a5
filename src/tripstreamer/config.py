"""
Runtime configuration loaded from environment variables.

Every process (producer, bridge, worker, retrieval API) reads the same
settings object. Each section is a small dataclass with a ``from_env()``
classmethod so tests can build one directly without touching the
environment.

USAGE:
------
from tripstreamer.config import get_settings

settings = get_settings()
settings.kafka.brokers  # ["localhost:9092"]
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


# ---------------------------------------------------------------------------
# MESSAGING
# ---------------------------------------------------------------------------


@dataclass
class KafkaConfig:
    """Event stream connection settings."""

    brokers: list[str] = field(default_factory=lambda: ["localhost:9092"])
    deal_topic: str = "deals.raw"
    consumer_group: str = "tripstreamer-kafka-consumer"

    @classmethod
    def from_env(cls) -> "KafkaConfig":
        return cls(
            brokers=[
                b.strip()
                for b in os.environ.get("KAFKA_BROKERS", "localhost:9092").split(",")
                if b.strip()
            ],
            deal_topic=os.environ.get("KAFKA_DEAL_TOPIC", "deals.raw"),
            consumer_group=os.environ.get(
                "KAFKA_CONSUMER_GROUP", "tripstreamer-kafka-consumer"
            ),
        )


@dataclass
class QueueConfig:
    """Durable queue (SQS) settings.

    Environment Variables:
        SQS_QUEUE_NAME: Main queue name (default: deals-alerts)
        SQS_DEAD_LETTER_QUEUE_NAME: Poison message sink (default: deals-alerts-dlq)
        SQS_BATCH_SIZE: Messages per receive, 1-10 (default: 5)
        SQS_WAIT_SECONDS: Long-poll wait (default: 10)
        SQS_MAX_RECEIVE_COUNT: Deliveries before dead-lettering (default: 5)
        AWS_REGION / AWS_ENDPOINT / AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY
    """

    queue_name: str = "deals-alerts"
    dead_letter_queue_name: str = "deals-alerts-dlq"
    batch_size: int = 5
    wait_seconds: int = 10
    max_receive_count: int = 5
    region: str = "us-east-1"
    endpoint_url: str | None = "http://localhost:4566"
    access_key_id: str = "test"
    secret_access_key: str = "test"

    @classmethod
    def from_env(cls) -> "QueueConfig":
        return cls(
            queue_name=os.environ.get("SQS_QUEUE_NAME", "deals-alerts"),
            dead_letter_queue_name=os.environ.get(
                "SQS_DEAD_LETTER_QUEUE_NAME", "deals-alerts-dlq"
            ),
            batch_size=_env_int("SQS_BATCH_SIZE", 5),
            wait_seconds=_env_int("SQS_WAIT_SECONDS", 10),
            max_receive_count=_env_int("SQS_MAX_RECEIVE_COUNT", 5),
            region=os.environ.get("AWS_REGION", "us-east-1"),
            endpoint_url=os.environ.get("AWS_ENDPOINT", "http://localhost:4566") or None,
            access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "test"),
            secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "test"),
        )


# ---------------------------------------------------------------------------
# STORAGE
# ---------------------------------------------------------------------------


@dataclass
class PostgresConfig:
    """Relational store settings, shared by the deal and document stores."""

    host: str = "localhost"
    port: int = 5432
    user: str = "tripstreamer"
    password: str = "tripstreamer"
    database: str = "tripstreamer"

    @property
    def conninfo(self) -> str:
        return (
            f"host={self.host} port={self.port} user={self.user} "
            f"password={self.password} dbname={self.database}"
        )

    @classmethod
    def from_env(cls) -> "PostgresConfig":
        return cls(
            host=os.environ.get("PGHOST", "localhost"),
            port=_env_int("PGPORT", 5432),
            user=os.environ.get("PGUSER", "tripstreamer"),
            password=os.environ.get("PGPASSWORD", "tripstreamer"),
            database=os.environ.get("PGDATABASE", "tripstreamer"),
        )


@dataclass
class CacheConfig:
    """Redis connection and TTLs for markers and derived caches."""

    redis_url: str = "redis://localhost:6379"
    event_ttl_seconds: int = 86400
    stats_ttl_seconds: int = 60
    active_deals_ttl_seconds: int = 20

    @classmethod
    def from_env(cls) -> "CacheConfig":
        return cls(
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
            event_ttl_seconds=_env_int("EVENT_TTL_SECONDS", 86400),
            stats_ttl_seconds=_env_int("DEST_STATS_TTL", 60),
            active_deals_ttl_seconds=_env_int("ACTIVE_DEALS_TTL", 20),
        )


# ---------------------------------------------------------------------------
# RETRIEVAL
# ---------------------------------------------------------------------------


@dataclass
class RetrievalConfig:
    """Retrieval service settings (server and client side)."""

    port: int = 7070
    collection: str = "default"
    max_documents: int = 5000
    embedding_dim: int = 64
    service_url: str = "http://localhost:7070"
    client_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "RetrievalConfig":
        return cls(
            port=_env_int("RAG_PORT", 7070),
            collection=os.environ.get("RAG_COLLECTION", "default"),
            max_documents=_env_int("RAG_MAX_DOCS", 5000),
            embedding_dim=_env_int("RAG_EMBEDDING_DIM", 64),
            service_url=os.environ.get("RAG_SERVICE_URL", "http://localhost:7070"),
            client_timeout=_env_float("RAG_CLIENT_TIMEOUT", 5.0),
        )


# ---------------------------------------------------------------------------
# WORKERS
# ---------------------------------------------------------------------------


@dataclass
class ProducerConfig:
    interval_ms: int = 3000

    @classmethod
    def from_env(cls) -> "ProducerConfig":
        return cls(interval_ms=_env_int("PRODUCE_INTERVAL_MS", 3000))


@dataclass
class BridgeConfig:
    price_threshold: float = 500.0

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(price_threshold=_env_float("MAX_ALERT_PRICE", 500))


@dataclass
class Settings:
    """All configuration sections for one process."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    producer: ProducerConfig = field(default_factory=ProducerConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load every section from environment variables."""
        return cls(
            kafka=KafkaConfig.from_env(),
            queue=QueueConfig.from_env(),
            postgres=PostgresConfig.from_env(),
            cache=CacheConfig.from_env(),
            retrieval=RetrievalConfig.from_env(),
            producer=ProducerConfig.from_env(),
            bridge=BridgeConfig.from_env(),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


# Global settings singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings (lazy-loaded from env)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
