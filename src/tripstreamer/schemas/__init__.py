"""Message and record schemas shared across the pipeline."""

from tripstreamer.schemas.deals import (
    DealEvent,
    DealSort,
    DestinationStats,
    QueueMessage,
    format_timestamp,
    utcnow,
)

__all__ = [
    "DealEvent",
    "DealSort",
    "DestinationStats",
    "QueueMessage",
    "format_timestamp",
    "utcnow",
]
