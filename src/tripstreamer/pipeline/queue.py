"""
Durable queue adapters.

SqsQueue wraps a boto3 SQS client; InMemoryQueue reproduces the parts of
SQS semantics the worker depends on (visibility timeout, receive counts,
delete-by-receipt) so the worker can be tested without LocalStack.
"""

from __future__ import annotations

import itertools
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tripstreamer.config import QueueConfig
from tripstreamer.core.errors import QueueUnavailable
from tripstreamer.core.protocols import ReceivedMessage

logger = logging.getLogger(__name__)


def make_sqs_client(config: QueueConfig) -> Any:
    """Create a boto3 SQS client from queue settings."""
    return boto3.client(
        "sqs",
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
    )


# ---------------------------------------------------------------------------
# SQS (Production)
# ---------------------------------------------------------------------------


class SqsQueue:
    """A single SQS queue addressed by URL."""

    def __init__(self, client: Any, queue_url: str, name: str):
        self._client = client
        self.queue_url = queue_url
        self.name = name

    @classmethod
    def resolve(cls, client: Any, name: str) -> "SqsQueue":
        """
        Ensure the queue exists and look up its URL.

        Raises:
            QueueUnavailable: the URL could not be resolved
        """
        try:
            client.create_queue(QueueName=name)
        except ClientError as e:
            logger.warning(f"Queue {name} may already exist: {e}")
        except BotoCoreError as e:
            raise QueueUnavailable(f"Unable to reach queue service for {name}: {e}") from e

        try:
            response = client.get_queue_url(QueueName=name)
        except (ClientError, BotoCoreError) as e:
            raise QueueUnavailable(f"Unable to resolve queue URL for {name}: {e}") from e

        queue_url = response.get("QueueUrl")
        if not queue_url:
            raise QueueUnavailable(f"Unable to resolve queue URL for {name}")
        return cls(client, queue_url, name)

    def send(self, body: str, attributes: dict[str, str] | None = None) -> str:
        kwargs: dict[str, Any] = {"QueueUrl": self.queue_url, "MessageBody": body}
        if attributes:
            kwargs["MessageAttributes"] = {
                key: {"DataType": "String", "StringValue": value}
                for key, value in attributes.items()
            }
        response = self._client.send_message(**kwargs)
        return response["MessageId"]

    def receive(self, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        response = self._client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_seconds,
            MessageAttributeNames=["All"],
            AttributeNames=["ApproximateReceiveCount"],
        )

        received = []
        for message in response.get("Messages", []):
            if not message.get("Body") or not message.get("ReceiptHandle"):
                continue
            received.append(
                ReceivedMessage(
                    message_id=message.get("MessageId", ""),
                    receipt_handle=message["ReceiptHandle"],
                    body=message["Body"],
                    attributes={
                        key: value.get("StringValue", "")
                        for key, value in message.get("MessageAttributes", {}).items()
                    },
                    receive_count=int(
                        message.get("Attributes", {}).get("ApproximateReceiveCount", 1)
                    ),
                )
            )
        return received

    def delete(self, receipt_handle: str) -> None:
        self._client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)


# ---------------------------------------------------------------------------
# IN-MEMORY QUEUE (Testing)
# ---------------------------------------------------------------------------


@dataclass
class _Entry:
    message_id: str
    body: str
    attributes: dict[str, str]
    receive_count: int = 0
    visible_at: float = 0.0
    receipt_handle: str | None = None


@dataclass
class InMemoryQueue:
    """
    In-process queue with SQS-style visibility timeouts.

    A received message stays invisible for ``visibility_timeout`` seconds;
    if it is not deleted by then it is handed out again with a higher
    receive count. Deleting with a stale receipt handle is a no-op.
    """

    name: str = "in-memory"
    visibility_timeout: float = 30.0
    clock: Callable[[], float] = time.monotonic
    _entries: list[_Entry] = field(default_factory=list)
    _receipts: Any = field(default_factory=itertools.count)
    deleted: list[str] = field(default_factory=list)

    def send(self, body: str, attributes: dict[str, str] | None = None) -> str:
        message_id = str(uuid.uuid4())
        self._entries.append(_Entry(message_id, body, dict(attributes or {})))
        return message_id

    def receive(self, max_messages: int, wait_seconds: int = 0) -> list[ReceivedMessage]:
        now = self.clock()
        received = []
        for entry in self._entries:
            if len(received) >= max_messages:
                break
            if entry.visible_at > now:
                continue
            entry.receive_count += 1
            entry.visible_at = now + self.visibility_timeout
            entry.receipt_handle = f"{entry.message_id}#{next(self._receipts)}"
            received.append(
                ReceivedMessage(
                    message_id=entry.message_id,
                    receipt_handle=entry.receipt_handle,
                    body=entry.body,
                    attributes=dict(entry.attributes),
                    receive_count=entry.receive_count,
                )
            )
        return received

    def delete(self, receipt_handle: str) -> None:
        for entry in self._entries:
            if entry.receipt_handle == receipt_handle:
                self._entries.remove(entry)
                self.deleted.append(entry.message_id)
                return

    def bodies(self) -> list[str]:
        """Bodies of every message still on the queue."""
        return [entry.body for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
