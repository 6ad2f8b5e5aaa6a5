"""
Core module - shared protocols, types and errors.

USAGE:
------
from tripstreamer.core import DealStore, DurableQueue

class MyDealStore:
    '''Implements DealStore protocol.'''
    ...
"""

from tripstreamer.core.errors import (
    QueueUnavailable,
    TransientIOFailure,
    TripstreamerError,
    ValidationFailure,
)
from tripstreamer.core.protocols import (
    # Protocols
    EmbeddingProvider,
    DocumentStore,
    DealStore,
    DurableQueue,
    RetrievalNotifier,
    # Data classes
    ReceivedMessage,
)

__all__ = [
    # Protocols
    "EmbeddingProvider",
    "DocumentStore",
    "DealStore",
    "DurableQueue",
    "RetrievalNotifier",
    # Data classes
    "ReceivedMessage",
    # Errors
    "TripstreamerError",
    "ValidationFailure",
    "TransientIOFailure",
    "QueueUnavailable",
]
