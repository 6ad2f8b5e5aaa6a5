"""
Tests for the deal producer.

The Kafka client is replaced by fake publishers; the loop is driven with
asyncio.run() and a stop event.
"""

import asyncio
import random
from decimal import Decimal
from unittest.mock import AsyncMock

from tripstreamer.pipeline.producer import (
    AIRLINES,
    DESTINATIONS,
    MAX_PRICE,
    MIN_PRICE,
    DealProducer,
    KafkaDealPublisher,
    create_deal,
)
from tripstreamer.schemas import DealEvent


class RecordingPublisher:
    topic = "deals.raw"

    def __init__(self, fail_first: int = 0):
        self.published: list[DealEvent] = []
        self.attempts = 0
        self._fail_first = fail_first

    async def publish(self, deal: DealEvent) -> None:
        self.attempts += 1
        if self.attempts <= self._fail_first:
            raise ConnectionError("broker down")
        self.published.append(deal)


# ---------------------------------------------------------------------------
# DEAL GENERATION
# ---------------------------------------------------------------------------


class TestCreateDeal:
    """Test random deal generation."""

    def test_fields_within_ranges(self):
        rng = random.Random(42)
        for _ in range(50):
            deal = create_deal(rng)
            assert deal.destination in DESTINATIONS
            assert deal.airline in AIRLINES
            assert Decimal(str(MIN_PRICE)) <= deal.price <= Decimal(str(MAX_PRICE))
            assert deal.price == deal.price.quantize(Decimal("0.01"))

    def test_ids_are_unique(self):
        rng = random.Random(7)
        assert len({create_deal(rng).id for _ in range(100)}) == 100

    def test_seeded_rng_is_reproducible(self):
        a = create_deal(random.Random(1))
        b = create_deal(random.Random(1))
        assert (a.id, a.destination, a.price) == (b.id, b.destination, b.price)


# ---------------------------------------------------------------------------
# PUBLISHING
# ---------------------------------------------------------------------------


class TestKafkaDealPublisher:
    def test_publishes_json_keyed_by_destination(self, make_deal):
        producer = AsyncMock()
        publisher = KafkaDealPublisher(producer, "deals.raw")
        deal = make_deal()

        asyncio.run(publisher.publish(deal))

        producer.send_and_wait.assert_awaited_once()
        args, kwargs = producer.send_and_wait.call_args
        assert args == ("deals.raw",)
        assert kwargs["key"] == b"SYD"
        assert DealEvent.from_wire(kwargs["value"]) == deal


class TestDealProducer:
    """Test the tick and the run loop."""

    def test_tick_returns_published_deal(self, make_deal):
        publisher = RecordingPublisher()
        producer = DealProducer(publisher, deal_factory=make_deal)

        deal = asyncio.run(producer.tick())

        assert deal == make_deal()
        assert publisher.published == [deal]

    def test_tick_failure_returns_none(self):
        publisher = RecordingPublisher(fail_first=1)
        producer = DealProducer(publisher)

        assert asyncio.run(producer.tick()) is None
        assert publisher.published == []

    def test_failure_does_not_stop_loop(self):
        publisher = RecordingPublisher(fail_first=1)
        producer = DealProducer(publisher, interval_seconds=0.01)

        async def scenario():
            stop_event = asyncio.Event()
            task = asyncio.create_task(producer.run(stop_event))
            while len(publisher.published) < 2:
                await asyncio.sleep(0.01)
            stop_event.set()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())

        assert publisher.attempts >= 3

    def test_stop_event_ends_loop_promptly(self):
        publisher = RecordingPublisher()
        producer = DealProducer(publisher, interval_seconds=60)

        async def scenario():
            stop_event = asyncio.Event()
            task = asyncio.create_task(producer.run(stop_event))
            await asyncio.sleep(0.05)
            stop_event.set()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())

        assert len(publisher.published) == 1

    def test_preset_stop_event_publishes_nothing(self):
        publisher = RecordingPublisher()
        producer = DealProducer(publisher)

        async def scenario():
            stop_event = asyncio.Event()
            stop_event.set()
            await producer.run(stop_event)

        asyncio.run(scenario())

        assert publisher.attempts == 0
