"""Application service: Find Stale Reservations use case.

The saga engine never expires reservations on its own.  This handler is
the external sweep: it finds holds that have sat in Reserved longer than
the fulfillment window and drafts the cancellation events that would
release them.  Feeding those drafts back through the consumer is up to
the caller.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from stocksaga.domain.service.reservation_store import ReservationStore

EXPIRY_REASON = "reservation_expired"


class FindStaleReservationsHandler:

    def __init__(self, store: ReservationStore, window: timedelta) -> None:
        self._store = store
        self._window = window

    def handle(self, now: datetime | None = None) -> list[dict]:
        """Return one OrderCancelled payload per order with a stale hold."""
        now = now or datetime.now(timezone.utc)
        stale = self._store.list_active_older_than(now - self._window)

        orders: dict[str, str | None] = {}
        for reservation in stale:
            orders.setdefault(reservation.order_id, reservation.correlation_id)

        return [
            {
                "type": "OrderCancelled",
                "event_id": str(uuid.uuid4()),
                "order_id": order_id,
                "reason": EXPIRY_REASON,
                "correlation_id": correlation_id,
            }
            for order_id, correlation_id in orders.items()
        ]
