"""JSON-file-backed implementation of ReservationRepository."""

from __future__ import annotations

from datetime import datetime

from stocksaga.domain.model.reservation import ReservationStatus, StockReservation
from stocksaga.domain.repository.reservation_repository import ReservationRepository
from stocksaga.infrastructure.persistence.json_file import JsonFileRepository


class JsonReservationRepository(JsonFileRepository, ReservationRepository):

    # --- ReservationRepository interface --------------------------------------

    def get_by_id(self, reservation_id: str) -> StockReservation | None:
        for raw in self._load_raw():
            if raw["id"] == reservation_id:
                return self._to_domain(raw)
        return None

    def list_by_order(self, order_id: str) -> list[StockReservation]:
        return [
            self._to_domain(raw) for raw in self._load_raw()
            if raw["order_id"] == order_id
        ]

    def list_all(self) -> list[StockReservation]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def add_if_no_active(self, reservation: StockReservation) -> bool:
        with self._locked():
            records = self._load_raw()
            for raw in records:
                if (
                    raw["order_id"] == reservation.order_id
                    and raw["product_id"] == reservation.product_id
                    and raw["status"] == ReservationStatus.RESERVED.value
                ):
                    return False
            records.append(self._to_raw(reservation))
            self._persist_raw(records)
            return True

    def replace_if_status(
        self,
        reservation: StockReservation,
        expected_status: ReservationStatus,
    ) -> bool:
        with self._locked():
            records = self._load_raw()
            for i, raw in enumerate(records):
                if raw["id"] != reservation.id:
                    continue
                if raw["status"] != expected_status.value:
                    return False
                records[i] = self._to_raw(reservation)
                self._persist_raw(records)
                return True
            return False

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(reservation: StockReservation) -> dict:
        return {
            "id": reservation.id,
            "order_id": reservation.order_id,
            "product_id": reservation.product_id,
            "product_name": reservation.product_name,
            "quantity": reservation.quantity,
            "status": reservation.status.value,
            "reserved_at": reservation.reserved_at.isoformat(),
            "processed_at": (
                reservation.processed_at.isoformat() if reservation.processed_at else None
            ),
            "correlation_id": reservation.correlation_id,
        }

    @staticmethod
    def _to_domain(raw: dict) -> StockReservation:
        processed_at = raw.get("processed_at")
        return StockReservation(
            id=raw["id"],
            order_id=raw["order_id"],
            product_id=raw["product_id"],
            product_name=raw.get("product_name", ""),
            quantity=raw["quantity"],
            status=ReservationStatus(raw["status"]),
            reserved_at=datetime.fromisoformat(raw["reserved_at"]),
            processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
            correlation_id=raw.get("correlation_id"),
        )
