"""Events crossing the inventory boundary.

Inbound events are order-lifecycle facts published by the sales side.
They form a closed union (``InboundEvent``); the saga engine handles each
kind explicitly and refuses anything else.

Outbound events report what the inventory side did about them.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

from stocksaga.domain.exceptions import ValidationError
from stocksaga.domain.model.value_objects import Quantity, require_text


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OrderItemReserveRequested:
    event_id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    correlation_id: str | None = None


@dataclass(frozen=True)
class OrderConfirmed:
    event_id: str
    order_id: str
    correlation_id: str | None = None


@dataclass(frozen=True)
class OrderCancelled:
    event_id: str
    order_id: str
    reason: str = ""
    correlation_id: str | None = None


@dataclass(frozen=True)
class OrderFulfillmentFailed:
    event_id: str
    order_id: str
    correlation_id: str | None = None


InboundEvent = Union[
    OrderItemReserveRequested,
    OrderConfirmed,
    OrderCancelled,
    OrderFulfillmentFailed,
]

INBOUND_EVENT_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        OrderItemReserveRequested,
        OrderConfirmed,
        OrderCancelled,
        OrderFulfillmentFailed,
    )
}


def event_type_of(event: InboundEvent) -> str:
    return type(event).__name__


def parse_event(raw: Any) -> InboundEvent:
    """Build an inbound event from a decoded JSON payload.

    The payload carries a ``type`` discriminator and snake_case fields.
    Raises ValidationError for anything the saga could not act on.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Event payload must be a JSON object")

    event_type = raw.get("type")
    cls = INBOUND_EVENT_TYPES.get(event_type) if isinstance(event_type, str) else None
    if cls is None:
        raise ValidationError(f"Unknown event type: {event_type!r}")

    event_id = require_text(raw.get("event_id"), "event_id")
    order_id = require_text(raw.get("order_id"), "order_id")
    correlation_id = _optional_text(raw.get("correlation_id"), "correlation_id")

    if cls is OrderItemReserveRequested:
        return OrderItemReserveRequested(
            event_id=event_id,
            order_id=order_id,
            product_id=require_text(raw.get("product_id"), "product_id"),
            product_name=_optional_text(raw.get("product_name"), "product_name") or "",
            quantity=Quantity(raw.get("quantity")).value,
            correlation_id=correlation_id,
        )
    if cls is OrderCancelled:
        return OrderCancelled(
            event_id=event_id,
            order_id=order_id,
            reason=_optional_text(raw.get("reason"), "reason") or "",
            correlation_id=correlation_id,
        )
    return cls(event_id=event_id, order_id=order_id, correlation_id=correlation_id)


def _optional_text(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field_name}' must be a string")
    return value


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------
def _new_event_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StockReserved:
    order_id: str
    product_id: str
    quantity: int
    reservation_id: str
    correlation_id: str | None = None
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StockReservationFailed:
    """A reserve request was turned down.

    ``available_quantity`` is the stock the ledger saw when it refused the
    request.  Under contention that is the quantity left after the winning
    reservations, not the quantity before them.  Unknown products report 0.
    """

    order_id: str
    product_id: str
    requested_quantity: int
    available_quantity: int
    correlation_id: str | None = None
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StockDebited:
    order_id: str
    product_id: str
    quantity: int
    correlation_id: str | None = None
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StockReleased:
    order_id: str
    product_id: str
    quantity: int
    reservation_id: str
    correlation_id: str | None = None
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


OutboundEvent = Union[StockReserved, StockReservationFailed, StockDebited, StockReleased]


def to_message(event: OutboundEvent) -> dict[str, Any]:
    """Flatten an outbound event into a transport-ready mapping."""
    body = asdict(event)
    body["occurred_at"] = event.occurred_at.isoformat()
    return {"type": type(event).__name__, **body}
