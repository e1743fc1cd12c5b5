"""Abstract repository for StockReservation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stocksaga.domain.model.reservation import ReservationStatus, StockReservation


class ReservationRepository(ABC):

    @abstractmethod
    def get_by_id(self, reservation_id: str) -> StockReservation | None:
        """Return a reservation by id, or None."""

    @abstractmethod
    def list_by_order(self, order_id: str) -> list[StockReservation]:
        """Return every reservation of an order, oldest first."""

    @abstractmethod
    def list_all(self) -> list[StockReservation]:
        """Return every reservation."""

    @abstractmethod
    def add_if_no_active(self, reservation: StockReservation) -> bool:
        """Insert *reservation* unless its order-product pair is already Reserved.

        Check and insert happen as one step.  Returns False on conflict.
        """

    @abstractmethod
    def replace_if_status(
        self,
        reservation: StockReservation,
        expected_status: ReservationStatus,
    ) -> bool:
        """Overwrite the stored row only if it still has *expected_status*."""
