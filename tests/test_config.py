"""
Unit Tests for settings loading.
"""

from unittest.mock import patch

from tripstreamer.config import (
    CacheConfig,
    KafkaConfig,
    PostgresConfig,
    QueueConfig,
    Settings,
    get_settings,
    reset_settings,
)


class TestSettingsDefaults:
    """Defaults match the local docker-compose setup."""

    def test_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings.from_env()

        assert settings.kafka.brokers == ["localhost:9092"]
        assert settings.kafka.deal_topic == "deals.raw"
        assert settings.queue.queue_name == "deals-alerts"
        assert settings.queue.batch_size == 5
        assert settings.queue.wait_seconds == 10
        assert settings.queue.max_receive_count == 5
        assert settings.cache.event_ttl_seconds == 86400
        assert settings.cache.stats_ttl_seconds == 60
        assert settings.cache.active_deals_ttl_seconds == 20
        assert settings.retrieval.port == 7070
        assert settings.retrieval.max_documents == 5000
        assert settings.producer.interval_ms == 3000
        assert settings.bridge.price_threshold == 500.0
        assert settings.log_level == "INFO"


class TestSettingsFromEnv:
    """Environment variables override defaults."""

    def test_brokers_are_split_and_trimmed(self):
        with patch.dict("os.environ", {"KAFKA_BROKERS": "k1:9092, k2:9092,"}, clear=True):
            assert KafkaConfig.from_env().brokers == ["k1:9092", "k2:9092"]

    def test_queue_overrides(self):
        env = {
            "SQS_QUEUE_NAME": "alerts",
            "SQS_BATCH_SIZE": "10",
            "SQS_MAX_RECEIVE_COUNT": "3",
            "AWS_ENDPOINT": "",
        }
        with patch.dict("os.environ", env, clear=True):
            config = QueueConfig.from_env()

        assert config.queue_name == "alerts"
        assert config.batch_size == 10
        assert config.max_receive_count == 3
        assert config.endpoint_url is None

    def test_cache_ttls(self):
        env = {"EVENT_TTL_SECONDS": "10", "DEST_STATS_TTL": "5", "ACTIVE_DEALS_TTL": "2"}
        with patch.dict("os.environ", env, clear=True):
            config = CacheConfig.from_env()

        assert (config.event_ttl_seconds, config.stats_ttl_seconds, config.active_deals_ttl_seconds) == (10, 5, 2)

    def test_threshold_and_log_level(self):
        with patch.dict("os.environ", {"MAX_ALERT_PRICE": "350.5", "LOG_LEVEL": "debug"}, clear=True):
            settings = Settings.from_env()

        assert settings.bridge.price_threshold == 350.5
        assert settings.log_level == "DEBUG"

    def test_conninfo(self):
        config = PostgresConfig(host="db", port=5433, user="u", password="p", database="d")
        assert config.conninfo == "host=db port=5433 user=u password=p dbname=d"


class TestSettingsSingleton:
    def test_cached_until_reset(self):
        reset_settings()
        try:
            first = get_settings()
            assert get_settings() is first
            reset_settings()
            assert get_settings() is not first
        finally:
            reset_settings()
