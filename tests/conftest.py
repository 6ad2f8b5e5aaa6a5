"""
Shared fixtures for the pipeline and retrieval tests.

Redis is replaced by fakeredis; Postgres and SQS by the in-memory
implementations shipped with the package.
"""

from datetime import datetime, timezone
from decimal import Decimal

import fakeredis
import pytest

from tripstreamer.observability import reset_config, reset_tracer
from tripstreamer.schemas.deals import DealEvent


@pytest.fixture(autouse=True)
def reset_observability():
    """Every test starts with tracing disabled and no cached tracer."""
    reset_config()
    reset_tracer()
    yield
    reset_config()
    reset_tracer()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def make_deal():
    """Build DealEvents with sensible defaults."""

    def _make(
        id="e1",
        destination="SYD",
        price="300",
        airline="Qantas",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    ):
        return DealEvent(
            id=id,
            destination=destination,
            price=Decimal(str(price)),
            airline=airline,
            created_at=created_at,
        )

    return _make
