"""Application service: Show Reservations use case (query)."""

from __future__ import annotations

from stocksaga.application.dto import ReservationDTO
from stocksaga.domain.exceptions import EntityNotFoundError
from stocksaga.domain.model.reservation import StockReservation
from stocksaga.domain.service.reservation_store import ReservationStore


class ShowReservationsHandler:

    def __init__(self, store: ReservationStore) -> None:
        self._store = store

    def for_order(self, order_id: str) -> list[ReservationDTO]:
        reservations = self._store.list_for_order(order_id)
        if not reservations:
            raise EntityNotFoundError(f"No reservations for order '{order_id}'")
        return [to_dto(r) for r in reservations]

    def by_id(self, reservation_id: str) -> ReservationDTO:
        return to_dto(self._store.get_by_id(reservation_id))


def to_dto(reservation: StockReservation) -> ReservationDTO:
    return ReservationDTO(
        id=reservation.id,
        order_id=reservation.order_id,
        product_id=reservation.product_id,
        product_name=reservation.product_name,
        quantity=reservation.quantity,
        status=reservation.status.value,
        reserved_at=reservation.reserved_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        processed_at=(
            reservation.processed_at.strftime("%Y-%m-%d %H:%M:%S UTC")
            if reservation.processed_at
            else None
        ),
        correlation_id=reservation.correlation_id,
    )
