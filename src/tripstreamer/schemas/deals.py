"""
Wire contracts for deal events.

These Pydantic models are the MESSAGE CONTRACT between the producer, the
stream bridge and the persistence worker. Every payload read off Kafka or
SQS is validated against them before anything else happens.

WIRE FORMAT:
------------
Field names on the wire are camelCase (``createdAt``, ``eventId``) because
the same JSON is read by the GraphQL backend and the browser UI. Python code
uses snake_case attributes; ``to_wire()`` / ``from_wire()`` handle the
translation.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class DealEvent(BaseModel):
    """
    A single synthetic flight deal.

    Immutable once published. ``id`` is the idempotency key for the whole
    pipeline: every persisted deal row carries the id of the event it came
    from.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, description="Globally unique event id")
    destination: str = Field(min_length=1, description="Destination code, e.g. 'SYD'")
    price: Decimal = Field(ge=0, description="Fare in USD")
    airline: str = Field(min_length=1)
    created_at: datetime = Field(alias="createdAt")

    @field_serializer("price")
    def _serialize_price(self, price: Decimal) -> float | int:
        # JSON consumers expect a number, not a decimal string
        if price == price.to_integral_value():
            return int(price)
        return float(price)

    @field_serializer("created_at")
    def _serialize_created_at(self, created_at: datetime) -> str:
        return format_timestamp(created_at)

    def to_wire(self) -> dict[str, Any]:
        """Convert to the camelCase JSON-ready dict."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire())

    @classmethod
    def from_wire(cls, payload: str | bytes | dict[str, Any]) -> "DealEvent":
        if isinstance(payload, dict):
            return cls.model_validate(payload)
        return cls.model_validate_json(payload)

    def describe(self) -> str:
        """Human-readable sentence used as the retrieval document text."""
        return (
            f"Deal {self.id} to {self.destination} for ${self.to_wire()['price']} "
            f"via {self.airline} on {format_timestamp(self.created_at)}"
        )


class QueueMessage(BaseModel):
    """Envelope for a DealEvent in transit between the bridge and the worker."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_id: str = Field(alias="eventId", min_length=1)
    deal: DealEvent

    @classmethod
    def wrap(cls, deal: DealEvent) -> "QueueMessage":
        return cls(event_id=deal.id, deal=deal)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True))

    @classmethod
    def from_json(cls, body: str | bytes) -> "QueueMessage":
        return cls.model_validate_json(body)


class DestinationStats(BaseModel):
    """Derived per-destination deal count, cached with a short TTL."""

    model_config = ConfigDict(populate_by_name=True)

    destination: str
    count: int = Field(ge=0)
    updated_at: datetime = Field(alias="updatedAt")

    @field_serializer("updated_at")
    def _serialize_updated_at(self, updated_at: datetime) -> str:
        return format_timestamp(updated_at)


class DealSort(str, Enum):
    """Sort orders supported by the deal read path."""

    NEWEST = "NEWEST"
    PRICE_ASC = "PRICE_ASC"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
