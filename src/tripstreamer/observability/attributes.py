"""
Semantic Conventions for Span Attributes

Defines attribute keys for the messaging pipeline and the retrieval
service. Messaging keys follow the OpenTelemetry messaging conventions;
the rest are custom namespaces.

Reference: https://opentelemetry.io/docs/specs/semconv/messaging/
"""

# ---------------------------------------------------------------------------
# MESSAGING NAMESPACE (OTel standard)
# ---------------------------------------------------------------------------

MESSAGING_SYSTEM = "messaging.system"  # "kafka", "aws_sqs"
MESSAGING_DESTINATION = "messaging.destination.name"  # topic or queue name
MESSAGING_MESSAGE_ID = "messaging.message.id"
MESSAGING_KAFKA_PARTITION = "messaging.kafka.destination.partition"


# ---------------------------------------------------------------------------
# PIPELINE NAMESPACE (custom)
# ---------------------------------------------------------------------------

PIPELINE_EVENT_ID = "pipeline.event.id"
PIPELINE_DEAL_DESTINATION = "pipeline.deal.destination"  # "SYD", not the queue
PIPELINE_DEAL_PRICE = "pipeline.deal.price"
PIPELINE_STAGE = "pipeline.stage"  # "producer", "bridge", "worker"
PIPELINE_OUTCOME = "pipeline.outcome"  # "committed", "degraded", "duplicate", ...
PIPELINE_FAILED_EFFECTS = "pipeline.failed_effects"  # list of effect names
PIPELINE_RECEIVE_COUNT = "pipeline.receive_count"


# ---------------------------------------------------------------------------
# RETRIEVAL NAMESPACE (custom)
# ---------------------------------------------------------------------------

RETRIEVAL_DOCUMENT_ID = "retrieval.document.id"
RETRIEVAL_SOURCE = "retrieval.source"
RETRIEVAL_TOP_K = "retrieval.top_k"
RETRIEVAL_CANDIDATE_COUNT = "retrieval.candidate_count"
RETRIEVAL_MATCH_COUNT = "retrieval.match_count"


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def deal_attributes(
    stage: str,
    event_id: str,
    destination: str | None = None,
    price: float | None = None,
) -> dict:
    """Create attributes dict for a span handling one deal."""
    attrs = {
        PIPELINE_STAGE: stage,
        PIPELINE_EVENT_ID: event_id,
    }
    if destination is not None:
        attrs[PIPELINE_DEAL_DESTINATION] = destination
    if price is not None:
        attrs[PIPELINE_DEAL_PRICE] = price
    return attrs


def queue_message_attributes(
    queue_name: str,
    message_id: str,
    receive_count: int,
) -> dict:
    """Create attributes dict for a worker span around one SQS message."""
    return {
        MESSAGING_SYSTEM: "aws_sqs",
        MESSAGING_DESTINATION: queue_name,
        MESSAGING_MESSAGE_ID: message_id,
        PIPELINE_STAGE: "worker",
        PIPELINE_RECEIVE_COUNT: receive_count,
    }
