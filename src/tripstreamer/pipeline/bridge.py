"""
Stream bridge - moves eligible deals from Kafka onto the durable queue.

Consumes the deal topic under a named consumer group (earliest offset on
first start) and forwards every deal priced at or under the threshold as a
QueueMessage tagged with its destination.

KNOWN GAP:
----------
Offsets are committed whether or not the forward succeeded. A failed SQS
send is logged and the event is lost; it is never redelivered from Kafka.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from aiokafka import AIOKafkaConsumer
from pydantic import ValidationError

from tripstreamer.observability import get_tracer
from tripstreamer.observability.attributes import (
    MESSAGING_KAFKA_PARTITION,
    PIPELINE_OUTCOME,
    deal_attributes,
)
from tripstreamer.schemas.deals import DealEvent, QueueMessage

if TYPE_CHECKING:
    from tripstreamer.core import DurableQueue

logger = logging.getLogger(__name__)


class BridgeOutcome(str, Enum):
    FORWARDED = "forwarded"
    FILTERED = "filtered"  # priced over the threshold
    INVALID = "invalid"  # empty or undecodable record
    FAILED = "failed"  # queue send raised


@dataclass
class BridgeResult:
    outcome: BridgeOutcome
    event_id: str | None = None
    message_id: str | None = None


def is_eligible(deal: DealEvent, threshold: float | Decimal) -> bool:
    """Eligibility filter: forward deals priced at or under the threshold."""
    return deal.price <= Decimal(str(threshold))


class StreamBridge:
    """Filters stream records and republishes eligible deals to the queue."""

    def __init__(self, queue: DurableQueue, price_threshold: float = 500.0):
        self._queue = queue
        self.price_threshold = price_threshold

    def handle_record(self, value: bytes | None, partition: int | None = None) -> BridgeResult:
        """
        Handle one Kafka record value.

        Never raises: every failure is logged and reported as an outcome,
        because the consumer offset advances either way.
        """
        if not value:
            return BridgeResult(BridgeOutcome.INVALID)

        try:
            deal = DealEvent.from_wire(value)
        except ValidationError as e:
            logger.error(f"Undecodable record on partition {partition}: {e}")
            return BridgeResult(BridgeOutcome.INVALID)

        with get_tracer().start_span(
            "bridge.record",
            attributes={
                **deal_attributes("bridge", deal.id, deal.destination, float(deal.price)),
                MESSAGING_KAFKA_PARTITION: partition if partition is not None else -1,
            },
        ) as span:
            if not is_eligible(deal, self.price_threshold):
                logger.info(
                    f"Skipping deal {deal.id} at ${deal.price} (> {self.price_threshold})"
                )
                span.set_attribute(PIPELINE_OUTCOME, BridgeOutcome.FILTERED.value)
                return BridgeResult(BridgeOutcome.FILTERED, deal.id)

            try:
                message_id = self._queue.send(
                    QueueMessage.wrap(deal).to_json(),
                    {"destination": deal.destination},
                )
            except Exception as e:
                logger.error(f"Failed to forward deal {deal.id}: {e}")
                span.record_exception(e)
                span.set_attribute(PIPELINE_OUTCOME, BridgeOutcome.FAILED.value)
                return BridgeResult(BridgeOutcome.FAILED, deal.id)

            span.set_attribute(PIPELINE_OUTCOME, BridgeOutcome.FORWARDED.value)

        logger.info(
            f"Forwarded deal {deal.id} ({deal.destination}) from partition {partition}"
        )
        return BridgeResult(BridgeOutcome.FORWARDED, deal.id, message_id)

    async def consume(
        self,
        consumer: AIOKafkaConsumer,
        stop_event: asyncio.Event,
        poll_timeout_ms: int = 1000,
    ) -> None:
        """
        Drain ``consumer`` until ``stop_event`` is set.

        Records are handled one at a time. The queue send is a blocking
        boto3 call, so it runs in a worker thread to keep the consumer's
        heartbeat alive.
        """
        while not stop_event.is_set():
            batches = await consumer.getmany(timeout_ms=poll_timeout_ms)
            for partition, records in batches.items():
                for record in records:
                    await asyncio.to_thread(self.handle_record, record.value, partition.partition)
        logger.info("Bridge stopped")


async def run_bridge(settings=None, stop_event: asyncio.Event | None = None) -> None:
    """
    Resolve the queue, subscribe to the topic, and bridge until stopped.

    Raises:
        QueueUnavailable: the queue URL cannot be resolved
    """
    from tripstreamer.config import get_settings
    from tripstreamer.pipeline.queue import SqsQueue, make_sqs_client

    settings = settings or get_settings()
    stop_event = stop_event or asyncio.Event()

    queue = SqsQueue.resolve(make_sqs_client(settings.queue), settings.queue.queue_name)
    logger.info(f"Using SQS queue {queue.queue_url}")

    consumer = AIOKafkaConsumer(
        settings.kafka.deal_topic,
        bootstrap_servers=settings.kafka.brokers,
        group_id=settings.kafka.consumer_group,
        client_id="tripstreamer-kafka-consumer",
        auto_offset_reset="earliest",
        enable_auto_commit=True,
    )
    await consumer.start()
    logger.info(f"Subscribed to {settings.kafka.deal_topic}")
    try:
        bridge = StreamBridge(queue, price_threshold=settings.bridge.price_threshold)
        await bridge.consume(consumer, stop_event)
    finally:
        await consumer.stop()
