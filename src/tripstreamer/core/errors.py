"""
Error taxonomy shared by the pipeline and the retrieval service.

Duplicate events are NOT errors - they are a normal outcome value of the
persistence worker (see pipeline.worker.Outcome).
"""


class TripstreamerError(Exception):
    """Base class for all errors raised by this package."""


class ValidationFailure(TripstreamerError, ValueError):
    """Malformed payload, too-short text or out-of-range parameter.

    Rejected synchronously (HTTP 400) and never retried.
    """


class TransientIOFailure(TripstreamerError):
    """A store or network call failed.

    Only ever retried through queue redelivery, never in place.
    """


class QueueUnavailable(TripstreamerError):
    """The durable queue could not be resolved. Fatal at startup."""
