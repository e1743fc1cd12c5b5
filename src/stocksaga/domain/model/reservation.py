"""StockReservation — a provisional hold on stock for one order line.

Lifecycle::

    Reserved ──► Debited    (order confirmed)
        │
        └──────► Released   (order cancelled or failed)

Both terminal states are final.  Nothing ever re-enters ``Reserved``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from stocksaga.domain.exceptions import InvalidTransitionError
from stocksaga.domain.model.value_objects import Quantity, require_text


class ReservationStatus(Enum):
    RESERVED = "Reserved"
    DEBITED = "Debited"
    RELEASED = "Released"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.RESERVED


_ALLOWED_TRANSITIONS = {
    ReservationStatus.RESERVED: frozenset(
        {ReservationStatus.DEBITED, ReservationStatus.RELEASED}
    ),
    ReservationStatus.DEBITED: frozenset(),
    ReservationStatus.RELEASED: frozenset(),
}


@dataclass(frozen=True)
class StockReservation:
    """One row per order-product pair that has ever been reserved.

    Use ``StockReservation.create()`` for new holds; it validates the
    inputs.  The plain constructor is left simple so repositories can
    reconstitute persisted rows without re-validating.
    """

    id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    status: ReservationStatus = ReservationStatus.RESERVED
    reserved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    correlation_id: str | None = None

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def create(
        order_id: str,
        product_id: str,
        product_name: str,
        quantity: int,
        correlation_id: str | None = None,
        reserved_at: datetime | None = None,
    ) -> StockReservation:
        return StockReservation(
            id=str(uuid.uuid4()),
            order_id=require_text(order_id, "order_id"),
            product_id=require_text(product_id, "product_id"),
            product_name=product_name or "",
            quantity=Quantity(quantity).value,
            reserved_at=reserved_at or datetime.now(timezone.utc),
            correlation_id=correlation_id,
        )

    # --- Queries --------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.RESERVED

    def can_transition_to(self, target: ReservationStatus) -> bool:
        return target in _ALLOWED_TRANSITIONS[self.status]

    # --- State transitions ----------------------------------------------------

    def transition_to(self, target: ReservationStatus, at: datetime) -> StockReservation:
        """Return a copy moved to *target*, stamped with *at*.

        Raises InvalidTransitionError when the move is not a legal
        successor of the current status.
        """
        if not self.can_transition_to(target):
            raise InvalidTransitionError(
                f"Reservation {self.id} is already {self.status.value}; "
                f"cannot move to {target.value}"
            )
        return replace(self, status=target, processed_at=at)
