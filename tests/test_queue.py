"""
Tests for the durable queue adapters.

InMemoryQueue is driven by a fake clock so visibility timeouts can be
crossed without sleeping; SqsQueue is tested against a mocked boto3 client.
"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from tripstreamer.core.errors import QueueUnavailable
from tripstreamer.pipeline.queue import InMemoryQueue, SqsQueue


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _client_error(operation):
    return ClientError({"Error": {"Code": "QueueAlreadyExists", "Message": "exists"}}, operation)


# ---------------------------------------------------------------------------
# IN-MEMORY QUEUE
# ---------------------------------------------------------------------------


class TestInMemoryQueue:
    """Test SQS-style semantics of the in-memory queue."""

    def test_send_and_receive(self):
        queue = InMemoryQueue()
        message_id = queue.send("hello", {"destination": "SYD"})

        [message] = queue.receive(10)

        assert message.message_id == message_id
        assert message.body == "hello"
        assert message.attributes == {"destination": "SYD"}
        assert message.receive_count == 1

    def test_received_message_is_invisible(self):
        queue = InMemoryQueue(clock=FakeClock())
        queue.send("hello")

        queue.receive(10)

        assert queue.receive(10) == []
        assert len(queue) == 1

    def test_redelivered_after_visibility_timeout(self):
        clock = FakeClock()
        queue = InMemoryQueue(visibility_timeout=30, clock=clock)
        queue.send("hello")
        first = queue.receive(10)[0]

        clock.now = 31
        second = queue.receive(10)[0]

        assert second.message_id == first.message_id
        assert second.receive_count == 2
        assert second.receipt_handle != first.receipt_handle

    def test_delete_removes_message(self):
        queue = InMemoryQueue()
        message_id = queue.send("hello")
        [message] = queue.receive(10)

        queue.delete(message.receipt_handle)

        assert len(queue) == 0
        assert queue.deleted == [message_id]

    def test_stale_receipt_handle_is_ignored(self):
        clock = FakeClock()
        queue = InMemoryQueue(visibility_timeout=1, clock=clock)
        queue.send("hello")
        stale = queue.receive(10)[0]
        clock.now = 2
        queue.receive(10)

        queue.delete(stale.receipt_handle)

        assert len(queue) == 1

    def test_respects_max_messages(self):
        queue = InMemoryQueue()
        for i in range(5):
            queue.send(f"m{i}")

        assert [m.body for m in queue.receive(2)] == ["m0", "m1"]
        assert queue.bodies() == ["m0", "m1", "m2", "m3", "m4"]


# ---------------------------------------------------------------------------
# SQS QUEUE (mocked boto3 client)
# ---------------------------------------------------------------------------


@pytest.fixture
def sqs_client():
    client = MagicMock()
    client.get_queue_url.return_value = {"QueueUrl": "http://localhost:4566/000000000000/deals-alerts"}
    return client


class TestSqsQueueResolve:
    """Test queue URL resolution."""

    def test_creates_and_resolves(self, sqs_client):
        queue = SqsQueue.resolve(sqs_client, "deals-alerts")

        sqs_client.create_queue.assert_called_once_with(QueueName="deals-alerts")
        assert queue.queue_url.endswith("/deals-alerts")
        assert queue.name == "deals-alerts"

    def test_create_error_is_tolerated(self, sqs_client):
        sqs_client.create_queue.side_effect = _client_error("CreateQueue")

        queue = SqsQueue.resolve(sqs_client, "deals-alerts")

        assert queue.queue_url.endswith("/deals-alerts")

    def test_unresolvable_url_is_fatal(self, sqs_client):
        sqs_client.get_queue_url.side_effect = _client_error("GetQueueUrl")

        with pytest.raises(QueueUnavailable):
            SqsQueue.resolve(sqs_client, "deals-alerts")

    def test_missing_url_is_fatal(self, sqs_client):
        sqs_client.get_queue_url.return_value = {}

        with pytest.raises(QueueUnavailable):
            SqsQueue.resolve(sqs_client, "deals-alerts")

    def test_unreachable_endpoint_is_fatal(self, sqs_client):
        sqs_client.create_queue.side_effect = EndpointConnectionError(endpoint_url="http://localhost:4566")

        with pytest.raises(QueueUnavailable):
            SqsQueue.resolve(sqs_client, "deals-alerts")


class TestSqsQueueMessages:
    """Test send/receive/delete translation."""

    def test_send_with_attributes(self, sqs_client):
        sqs_client.send_message.return_value = {"MessageId": "m-1"}
        queue = SqsQueue(sqs_client, "url", "deals-alerts")

        assert queue.send("{}", {"destination": "SYD"}) == "m-1"
        sqs_client.send_message.assert_called_once_with(
            QueueUrl="url",
            MessageBody="{}",
            MessageAttributes={"destination": {"DataType": "String", "StringValue": "SYD"}},
        )

    def test_send_without_attributes(self, sqs_client):
        sqs_client.send_message.return_value = {"MessageId": "m-1"}
        SqsQueue(sqs_client, "url", "q").send("{}")

        assert "MessageAttributes" not in sqs_client.send_message.call_args.kwargs

    def test_receive_maps_messages(self, sqs_client):
        sqs_client.receive_message.return_value = {
            "Messages": [
                {
                    "MessageId": "m-1",
                    "ReceiptHandle": "r-1",
                    "Body": '{"eventId": "e1"}',
                    "Attributes": {"ApproximateReceiveCount": "3"},
                    "MessageAttributes": {"destination": {"DataType": "String", "StringValue": "SYD"}},
                },
                {"MessageId": "m-2", "ReceiptHandle": "r-2"},
            ]
        }
        queue = SqsQueue(sqs_client, "url", "q")

        messages = queue.receive(5, 10)

        assert len(messages) == 1
        assert messages[0].receive_count == 3
        assert messages[0].attributes == {"destination": "SYD"}
        kwargs = sqs_client.receive_message.call_args.kwargs
        assert kwargs["MaxNumberOfMessages"] == 5
        assert kwargs["WaitTimeSeconds"] == 10

    def test_receive_empty(self, sqs_client):
        sqs_client.receive_message.return_value = {}
        assert SqsQueue(sqs_client, "url", "q").receive(5, 0) == []

    def test_delete(self, sqs_client):
        SqsQueue(sqs_client, "url", "q").delete("r-1")
        sqs_client.delete_message.assert_called_once_with(QueueUrl="url", ReceiptHandle="r-1")
