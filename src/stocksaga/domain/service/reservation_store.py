"""Domain service: Reservation Store.

Sole mutator of StockReservation rows.  It owns the two rules the
repository alone cannot express: at most one active reservation per
order-product pair, and one-way status transitions.
"""

from __future__ import annotations

from datetime import datetime

from stocksaga.domain.exceptions import (
    DuplicateReservationError,
    EntityNotFoundError,
    InvalidTransitionError,
)
from stocksaga.domain.model.reservation import ReservationStatus, StockReservation
from stocksaga.domain.repository.reservation_repository import ReservationRepository


class ReservationStore:

    def __init__(self, reservation_repo: ReservationRepository) -> None:
        self._reservation_repo = reservation_repo

    def create(
        self,
        order_id: str,
        product_id: str,
        product_name: str,
        quantity: int,
        correlation_id: str | None = None,
        at: datetime | None = None,
    ) -> StockReservation:
        reservation = StockReservation.create(
            order_id=order_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            correlation_id=correlation_id,
            reserved_at=at,
        )
        if not self._reservation_repo.add_if_no_active(reservation):
            raise DuplicateReservationError(order_id, product_id)
        return reservation

    def get(self, order_id: str, product_id: str) -> StockReservation:
        """Return the reservation for an order-product pair.

        The active one wins; otherwise the most recent terminal one.
        """
        matches = [
            r for r in self._reservation_repo.list_by_order(order_id)
            if r.product_id == product_id
        ]
        if not matches:
            raise EntityNotFoundError(
                f"No reservation for order '{order_id}' and product '{product_id}'"
            )
        return self._current(matches)

    def get_by_id(self, reservation_id: str) -> StockReservation:
        reservation = self._reservation_repo.get_by_id(reservation_id)
        if reservation is None:
            raise EntityNotFoundError(f"Reservation '{reservation_id}' not found")
        return reservation

    def list_for_order(self, order_id: str) -> list[StockReservation]:
        return self._reservation_repo.list_by_order(order_id)

    def current_for_order(self, order_id: str) -> list[StockReservation]:
        """One row per product of the order, picked the way ``get`` picks.

        Terminal rows superseded by a later hold on the same product are
        left out, so a re-reserved line is not reported twice.
        """
        by_product: dict[str, list[StockReservation]] = {}
        for reservation in self._reservation_repo.list_by_order(order_id):
            by_product.setdefault(reservation.product_id, []).append(reservation)
        return [self._current(rows) for rows in by_product.values()]

    def list_active_older_than(self, cutoff: datetime) -> list[StockReservation]:
        return [
            r for r in self._reservation_repo.list_all()
            if r.is_active and r.reserved_at < cutoff
        ]

    def transition_to(
        self,
        reservation_id: str,
        target: ReservationStatus,
        at: datetime,
    ) -> StockReservation:
        """Move a Reserved row to a terminal state and stamp ``processed_at``.

        The write is conditional on the row still being Reserved, so two
        racing transitions cannot both land.
        """
        current = self.get_by_id(reservation_id)
        updated = current.transition_to(target, at)
        if not self._reservation_repo.replace_if_status(updated, ReservationStatus.RESERVED):
            latest = self.get_by_id(reservation_id)
            raise InvalidTransitionError(
                f"Reservation {reservation_id} became {latest.status.value} "
                f"before it could move to {target.value}"
            )
        return updated

    @staticmethod
    def _current(rows: list[StockReservation]) -> StockReservation:
        """The active row wins; otherwise the most recent terminal one."""
        active = [r for r in rows if r.is_active]
        return active[0] if active else rows[-1]
