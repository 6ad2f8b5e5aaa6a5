"""
Deal producer - publishes synthetic deals to the event stream.

Every tick builds one DealEvent and publishes it keyed by destination, so
all deals for one destination land on the same partition and keep their
relative order. Publish failures are logged and the loop keeps its fixed
cadence; there is no back-off.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from decimal import Decimal
from typing import Callable, Protocol

from aiokafka import AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import TopicAlreadyExistsError

from tripstreamer.observability import get_tracer
from tripstreamer.observability.attributes import (
    MESSAGING_DESTINATION,
    MESSAGING_SYSTEM,
    deal_attributes,
)
from tripstreamer.schemas.deals import DealEvent, utcnow

logger = logging.getLogger(__name__)

DESTINATIONS = ("NYC", "LON", "TYO", "SYD", "PAR", "LAX")
AIRLINES = ("Delta", "United", "Qantas", "American", "ANA", "Air France")
MIN_PRICE = 200.0
MAX_PRICE = 800.0


class DealPublisher(Protocol):
    async def publish(self, deal: DealEvent) -> None:
        ...


def create_deal(rng: random.Random | None = None) -> DealEvent:
    """Draw a random deal: uniform destination, airline and price."""
    rng = rng or random.Random()
    price = MIN_PRICE + rng.random() * (MAX_PRICE - MIN_PRICE)
    return DealEvent(
        id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
        destination=rng.choice(DESTINATIONS),
        price=Decimal(f"{price:.2f}"),
        airline=rng.choice(AIRLINES),
        created_at=utcnow(),
    )


class KafkaDealPublisher:
    """Publishes DealEvents as JSON to a Kafka topic."""

    def __init__(self, producer: AIOKafkaProducer, topic: str):
        self._producer = producer
        self.topic = topic

    async def publish(self, deal: DealEvent) -> None:
        await self._producer.send_and_wait(
            self.topic,
            value=deal.to_json().encode("utf-8"),
            key=deal.destination.encode("utf-8"),
            headers=[("content-type", b"application/json")],
        )


async def ensure_topic(brokers: list[str], topic: str) -> None:
    """Create the topic if it does not exist yet."""
    admin = AIOKafkaAdminClient(bootstrap_servers=brokers, client_id="tripstreamer-kafka-producer")
    await admin.start()
    try:
        await admin.create_topics([NewTopic(name=topic, num_partitions=1, replication_factor=1)])
        logger.info(f"Topic ensured: {topic}")
    except TopicAlreadyExistsError:
        logger.info(f"Topic already exists: {topic}")
    finally:
        await admin.close()


class DealProducer:
    """
    Timer-driven publisher.

    run() fires one deal, then waits ``interval_seconds``, regardless of
    whether the publish succeeded. Setting ``stop_event`` ends the loop at
    the next wait.
    """

    def __init__(
        self,
        publisher: DealPublisher,
        interval_seconds: float = 3.0,
        deal_factory: Callable[[], DealEvent] = create_deal,
    ):
        self._publisher = publisher
        self.interval_seconds = interval_seconds
        self._deal_factory = deal_factory

    async def tick(self) -> DealEvent | None:
        """Publish one deal. Returns it, or None if the publish failed."""
        deal = self._deal_factory()
        with get_tracer().start_span(
            "producer.publish",
            attributes={
                **deal_attributes("producer", deal.id, deal.destination, float(deal.price)),
                MESSAGING_SYSTEM: "kafka",
                MESSAGING_DESTINATION: getattr(self._publisher, "topic", ""),
            },
        ) as span:
            try:
                await self._publisher.publish(deal)
            except Exception as e:
                logger.error(f"Failed to publish deal {deal.id}: {e}")
                span.record_exception(e)
                span.set_status("error", str(e))
                return None

        logger.info(f"Published deal {deal.id} ({deal.destination}) at ${deal.price}")
        return deal

    async def run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Producer stopped")


async def run_producer(
    settings=None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Connect to Kafka and publish until ``stop_event`` is set."""
    from tripstreamer.config import get_settings

    settings = settings or get_settings()
    stop_event = stop_event or asyncio.Event()

    await ensure_topic(settings.kafka.brokers, settings.kafka.deal_topic)

    kafka_producer = AIOKafkaProducer(
        bootstrap_servers=settings.kafka.brokers,
        client_id="tripstreamer-kafka-producer",
    )
    await kafka_producer.start()
    logger.info("Connected to Kafka. Generating deals...")
    try:
        producer = DealProducer(
            KafkaDealPublisher(kafka_producer, settings.kafka.deal_topic),
            interval_seconds=settings.producer.interval_ms / 1000,
        )
        await producer.run(stop_event)
    finally:
        await kafka_producer.stop()
