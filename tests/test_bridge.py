"""
Tests for the stream bridge.

Records are fed straight into handle_record(); consume() is driven by a
fake consumer that mimics AIOKafkaConsumer.getmany().
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

from aiokafka.structs import TopicPartition

from tripstreamer.pipeline.bridge import BridgeOutcome, StreamBridge, is_eligible
from tripstreamer.pipeline.queue import InMemoryQueue


class FakeConsumer:
    """Hands out one batch per queued entry, then sets the stop event."""

    def __init__(self, batches, stop_event):
        self._batches = list(batches)
        self._stop_event = stop_event
        self.polls = 0

    async def getmany(self, timeout_ms=0):
        self.polls += 1
        if self._batches:
            return self._batches.pop(0)
        self._stop_event.set()
        return {}


# ---------------------------------------------------------------------------
# ELIGIBILITY
# ---------------------------------------------------------------------------


class TestIsEligible:
    def test_at_threshold_is_eligible(self, make_deal):
        assert is_eligible(make_deal(price="500"), 500)

    def test_under_threshold(self, make_deal):
        assert is_eligible(make_deal(price="499.99"), 500.0)

    def test_over_threshold(self, make_deal):
        assert not is_eligible(make_deal(price="500.01"), 500)


# ---------------------------------------------------------------------------
# RECORD HANDLING
# ---------------------------------------------------------------------------


class TestHandleRecord:
    """Test per-record forwarding decisions."""

    def test_forwards_eligible_deal(self, make_deal):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue, price_threshold=500)

        result = bridge.handle_record(make_deal(price="300").to_json().encode(), partition=0)

        assert result.outcome is BridgeOutcome.FORWARDED
        assert result.event_id == "e1"
        [message] = queue.receive(10)
        assert message.attributes == {"destination": "SYD"}
        body = json.loads(message.body)
        assert body["eventId"] == "e1"
        assert body["deal"]["price"] == 300

    def test_drops_expensive_deal(self, make_deal):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue, price_threshold=500)

        result = bridge.handle_record(make_deal(price="650").to_json().encode())

        assert result.outcome is BridgeOutcome.FILTERED
        assert len(queue) == 0

    def test_threshold_is_configurable(self, make_deal):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue, price_threshold=250)

        assert bridge.handle_record(make_deal(price="300").to_json().encode()).outcome is BridgeOutcome.FILTERED

    def test_empty_record_is_invalid(self):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue)

        assert bridge.handle_record(None).outcome is BridgeOutcome.INVALID
        assert bridge.handle_record(b"").outcome is BridgeOutcome.INVALID
        assert len(queue) == 0

    def test_undecodable_record_is_invalid(self):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue)

        assert bridge.handle_record(b"{not json").outcome is BridgeOutcome.INVALID
        assert bridge.handle_record(b'{"id": "x"}').outcome is BridgeOutcome.INVALID
        assert len(queue) == 0

    def test_send_failure_is_reported_not_raised(self, make_deal):
        queue = MagicMock()
        queue.send.side_effect = RuntimeError("sqs down")
        bridge = StreamBridge(queue)

        result = bridge.handle_record(make_deal().to_json().encode())

        assert result.outcome is BridgeOutcome.FAILED
        assert result.event_id == "e1"


# ---------------------------------------------------------------------------
# CONSUME LOOP
# ---------------------------------------------------------------------------


class TestConsume:
    """Test the consumer loop."""

    def test_handles_every_record_then_stops(self, make_deal):
        queue = InMemoryQueue()
        bridge = StreamBridge(queue, price_threshold=500)
        tp = TopicPartition("deals.raw", 0)
        records = [
            SimpleNamespace(value=make_deal(id="a", price="300").to_json().encode()),
            SimpleNamespace(value=make_deal(id="b", price="700").to_json().encode()),
            SimpleNamespace(value=b"garbage"),
            SimpleNamespace(value=make_deal(id="c", price="450").to_json().encode()),
        ]

        async def scenario():
            stop_event = asyncio.Event()
            consumer = FakeConsumer([{tp: records[:2]}, {tp: records[2:]}], stop_event)
            await bridge.consume(consumer, stop_event, poll_timeout_ms=10)
            return consumer

        consumer = asyncio.run(scenario())

        event_ids = [json.loads(body)["eventId"] for body in queue.bodies()]
        assert event_ids == ["a", "c"]
        assert consumer.polls == 3

    def test_preset_stop_event_skips_polling(self):
        bridge = StreamBridge(InMemoryQueue())

        async def scenario():
            stop_event = asyncio.Event()
            stop_event.set()
            consumer = FakeConsumer([], stop_event)
            await bridge.consume(consumer, stop_event)
            return consumer

        assert asyncio.run(scenario()).polls == 0
