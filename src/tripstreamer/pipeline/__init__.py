"""
Pipeline module - the producer → stream → bridge → queue → worker path.

Architecture:
    DealProducer → Kafka (deals.raw) → StreamBridge → SQS (deals-alerts) → PersistenceWorker
                                                                  ↓ (over delivery cap)
                                                           SQS (deals-alerts-dlq)
"""

from tripstreamer.pipeline.queue import InMemoryQueue, SqsQueue, make_sqs_client
from tripstreamer.pipeline.producer import (
    DealProducer,
    KafkaDealPublisher,
    create_deal,
    run_producer,
)
from tripstreamer.pipeline.bridge import (
    BridgeOutcome,
    BridgeResult,
    StreamBridge,
    is_eligible,
    run_bridge,
)
from tripstreamer.pipeline.worker import (
    MessageResult,
    Outcome,
    PersistenceWorker,
    build_worker,
    deal_document,
)

__all__ = [
    # Queue
    "InMemoryQueue",
    "SqsQueue",
    "make_sqs_client",
    # Producer
    "DealProducer",
    "KafkaDealPublisher",
    "create_deal",
    "run_producer",
    # Bridge
    "BridgeOutcome",
    "BridgeResult",
    "StreamBridge",
    "is_eligible",
    "run_bridge",
    # Worker
    "MessageResult",
    "Outcome",
    "PersistenceWorker",
    "build_worker",
    "deal_document",
]
