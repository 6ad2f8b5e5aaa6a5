"""
Persistence worker - drains the durable queue into the deal store.

Per message:

    Received ─┬─ over delivery cap ──────────────► DeadLettered → ack
              ├─ unparseable ────────────────────► Rejected (no ack, redelivered)
              ├─ marker present ─────────────────► Duplicate → ack
              └─ new ─► Persisted ─► caches invalidated ─► marker claimed
                        ─► stats refreshed ─► retrieval notified ─► ack
                                                  (Committed | Degraded)
    any uncaught exception ──────────────────────► Failed (no ack, redelivered)

Acknowledgment happens only after the branch finishes without raising; the
queue's visibility timeout is the only retry mechanism.

Ordering of the new-event branch: the deal row is written and the query
cache invalidated BEFORE the marker is claimed. Both steps are idempotent,
so a crash or Redis error between them is healed by redelivery, and a
present marker always means the row exists and no stale result survives.
Only the stats refresh and the retrieval notification are best-effort.
The claim itself is an atomic SET NX, which makes it the single gate for
the side effects when several workers race on the same event.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from pydantic import ValidationError

from tripstreamer.observability import get_tracer
from tripstreamer.observability.attributes import (
    PIPELINE_EVENT_ID,
    PIPELINE_FAILED_EFFECTS,
    PIPELINE_OUTCOME,
    queue_message_attributes,
)
from tripstreamer.schemas.deals import DealEvent, QueueMessage, format_timestamp

if TYPE_CHECKING:
    from tripstreamer.core import DealStore, DurableQueue, ReceivedMessage, RetrievalNotifier
    from tripstreamer.storage.cache import ProcessedMarkers, QueryResultCache, StatsCache

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """What happened to one queue message."""

    COMMITTED = "committed"  # persisted, every side effect succeeded
    DEGRADED = "degraded"  # persisted, at least one side effect failed
    DUPLICATE = "duplicate"
    REJECTED = "rejected"  # unparseable body, left for redelivery
    DEAD_LETTERED = "dead_lettered"
    FAILED = "failed"  # uncaught error, left for redelivery


@dataclass
class MessageResult:
    message_id: str
    outcome: Outcome
    event_id: str | None = None
    acknowledged: bool = False
    failed_effects: list[str] = field(default_factory=list)
    error: str | None = None


def deal_document(deal: DealEvent) -> dict:
    """Retrieval document payload for a persisted deal."""
    wire = deal.to_wire()
    return {
        "doc_id": deal.id,
        "source": f"deal:{deal.destination}",
        "text": deal.describe(),
        "metadata": {
            "type": "deal",
            "destination": deal.destination,
            "price": wire["price"],
            "airline": deal.airline,
            "createdAt": format_timestamp(deal.created_at),
        },
    }


class PersistenceWorker:
    """
    Long-polls the queue and applies each deal exactly once per marker TTL.

    All collaborators are injected; build_worker() wires the production
    ones from settings.
    """

    def __init__(
        self,
        queue: DurableQueue,
        deal_store: DealStore,
        markers: ProcessedMarkers,
        stats_cache: StatsCache,
        query_cache: QueryResultCache,
        retrieval: RetrievalNotifier,
        dead_letter_queue: DurableQueue | None = None,
        batch_size: int = 5,
        wait_seconds: int = 10,
        max_receive_count: int = 5,
    ):
        self._queue = queue
        self._deal_store = deal_store
        self._markers = markers
        self._stats = stats_cache
        self._query_cache = query_cache
        self._retrieval = retrieval
        self._dead_letters = dead_letter_queue
        self.batch_size = batch_size
        self.wait_seconds = wait_seconds
        self.max_receive_count = max_receive_count

    # -----------------------------------------------------------------------
    # LOOP
    # -----------------------------------------------------------------------

    def run(self, stop_event: threading.Event | None = None) -> None:
        """
        Poll until ``stop_event`` is set.

        The stop signal is checked between batches only: a batch that has
        been received is always fully handled before the loop exits.
        """
        stop_event = stop_event or threading.Event()
        logger.info(f"Listening on {self._queue.name}")

        while not stop_event.is_set():
            try:
                self.process_batch()
            except Exception:
                logger.exception(f"Receive from {self._queue.name} failed")
                stop_event.wait(1.0)

        logger.info("Worker stopped")

    def process_batch(self) -> list[MessageResult]:
        """Receive one batch and handle its messages sequentially."""
        messages = self._queue.receive(self.batch_size, self.wait_seconds)
        results = []
        for message in messages:
            try:
                results.append(self.handle_message(message))
            except Exception as e:
                logger.exception(f"Failed to process message {message.message_id}")
                results.append(
                    MessageResult(
                        message_id=message.message_id,
                        outcome=Outcome.FAILED,
                        error=str(e),
                    )
                )
        return results

    # -----------------------------------------------------------------------
    # SINGLE MESSAGE
    # -----------------------------------------------------------------------

    def handle_message(self, message: ReceivedMessage) -> MessageResult:
        """
        Handle one message. Exceptions propagate and leave it unacknowledged.
        """
        with get_tracer().start_span(
            "worker.message",
            attributes=queue_message_attributes(
                self._queue.name, message.message_id, message.receive_count
            ),
        ) as span:
            if self._over_delivery_cap(message):
                self._dead_letter(message)
                self._queue.delete(message.receipt_handle)
                span.set_attribute(PIPELINE_OUTCOME, Outcome.DEAD_LETTERED.value)
                return MessageResult(
                    message_id=message.message_id,
                    outcome=Outcome.DEAD_LETTERED,
                    acknowledged=True,
                )

            try:
                body = QueueMessage.from_json(message.body)
            except ValidationError as e:
                logger.error(f"Unparseable message {message.message_id}: {e}")
                span.set_attribute(PIPELINE_OUTCOME, Outcome.REJECTED.value)
                return MessageResult(
                    message_id=message.message_id,
                    outcome=Outcome.REJECTED,
                    error=str(e),
                )

            span.set_attribute(PIPELINE_EVENT_ID, body.event_id)
            result = self._apply(message, body)

            self._queue.delete(message.receipt_handle)
            result.acknowledged = True

            span.set_attribute(PIPELINE_OUTCOME, result.outcome.value)
            if result.failed_effects:
                span.set_attribute(PIPELINE_FAILED_EFFECTS, result.failed_effects)
                span.set_status("error", "degraded: " + ", ".join(result.failed_effects))
            return result

    def _apply(self, message: ReceivedMessage, body: QueueMessage) -> MessageResult:
        event_id = body.event_id
        deal = body.deal

        if self._markers.is_processed(event_id):
            logger.info(f"Duplicate event {event_id}, skipping")
            return MessageResult(message.message_id, Outcome.DUPLICATE, event_id)

        self._deal_store.insert_deal(deal)
        # Not best-effort: a failure leaves the message unacked and unmarked
        self._query_cache.invalidate_all()

        if not self._markers.claim(event_id):
            # Another worker claimed it between our check and our claim
            logger.info(f"Duplicate event {event_id} claimed concurrently, skipping")
            return MessageResult(message.message_id, Outcome.DUPLICATE, event_id)

        failed = [
            name
            for name, effect in (
                ("stats", lambda: self._stats.refresh(self._deal_store, deal.destination)),
                ("retrieval", lambda: self._retrieval.ingest(**deal_document(deal))),
            )
            if not self._run_effect(name, event_id, effect)
        ]

        if failed:
            logger.warning(f"Persisted deal {deal.id} with failed side effects: {', '.join(failed)}")
            return MessageResult(message.message_id, Outcome.DEGRADED, event_id, failed_effects=failed)

        logger.info(f"Persisted deal {deal.id} ({deal.destination})")
        return MessageResult(message.message_id, Outcome.COMMITTED, event_id)

    @staticmethod
    def _run_effect(name: str, event_id: str, effect: Callable[[], object]) -> bool:
        """Run a best-effort side effect. Failures are logged, never raised."""
        try:
            effect()
            return True
        except Exception as e:
            logger.warning(f"Side effect {name} failed for event {event_id}: {e}")
            return False

    # -----------------------------------------------------------------------
    # POISON MESSAGES
    # -----------------------------------------------------------------------

    def _over_delivery_cap(self, message: ReceivedMessage) -> bool:
        if message.receive_count <= self.max_receive_count:
            return False
        if self._dead_letters is None:
            logger.warning(
                f"Message {message.message_id} delivered {message.receive_count} times "
                "and no dead-letter queue is configured"
            )
            return False
        return True

    def _dead_letter(self, message: ReceivedMessage) -> None:
        attributes = dict(message.attributes)
        attributes["sourceQueue"] = self._queue.name
        attributes["receiveCount"] = str(message.receive_count)
        self._dead_letters.send(message.body, attributes)
        logger.error(
            f"Dead-lettered message {message.message_id} after "
            f"{message.receive_count} deliveries"
        )


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def build_worker(settings=None) -> tuple[PersistenceWorker, Callable[[], None]]:
    """
    Wire a production worker from settings.

    Returns:
        (worker, close) where close() releases the store and HTTP client

    Raises:
        QueueUnavailable: the main or dead-letter queue cannot be resolved
    """
    from tripstreamer.config import get_settings
    from tripstreamer.pipeline.queue import SqsQueue, make_sqs_client
    from tripstreamer.retrieval.client import RetrievalClient
    from tripstreamer.storage.cache import (
        ProcessedMarkers,
        QueryResultCache,
        StatsCache,
        get_redis,
    )
    from tripstreamer.storage.deals import get_deal_store

    settings = settings or get_settings()
    sqs = make_sqs_client(settings.queue)
    queue = SqsQueue.resolve(sqs, settings.queue.queue_name)
    dead_letters = SqsQueue.resolve(sqs, settings.queue.dead_letter_queue_name)

    deal_store = get_deal_store(use_postgres=True)
    deal_store.create_schema()

    client = get_redis(settings.cache.redis_url)
    retrieval = RetrievalClient(
        settings.retrieval.service_url, timeout=settings.retrieval.client_timeout
    )

    worker = PersistenceWorker(
        queue=queue,
        deal_store=deal_store,
        markers=ProcessedMarkers(client, settings.cache.event_ttl_seconds),
        stats_cache=StatsCache(client, settings.cache.stats_ttl_seconds),
        query_cache=QueryResultCache(client, settings.cache.active_deals_ttl_seconds),
        retrieval=retrieval,
        dead_letter_queue=dead_letters,
        batch_size=settings.queue.batch_size,
        wait_seconds=settings.queue.wait_seconds,
        max_receive_count=settings.queue.max_receive_count,
    )

    def close() -> None:
        deal_store.close()
        retrieval.close()
        client.close()

    return worker, close
