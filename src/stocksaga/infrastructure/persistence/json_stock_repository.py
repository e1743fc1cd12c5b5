"""JSON-file-backed implementation of StockRepository."""

from __future__ import annotations

from stocksaga.domain.model.stock import StockRecord
from stocksaga.domain.repository.stock_repository import StockRepository
from stocksaga.infrastructure.persistence.json_file import JsonFileRepository


class JsonStockRepository(JsonFileRepository, StockRepository):

    # --- StockRepository interface --------------------------------------------

    def get_by_product_id(self, product_id: str) -> StockRecord | None:
        for raw in self._load_raw():
            if raw["product_id"] == product_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[StockRecord]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def add(self, record: StockRecord) -> bool:
        with self._locked():
            records = self._load_raw()
            if any(raw["product_id"] == record.product_id for raw in records):
                return False
            records.append(self._to_raw(record))
            self._persist_raw(records)
            return True

    def compare_and_swap(
        self,
        product_id: str,
        expected_version: int,
        new_available: int,
    ) -> StockRecord | None:
        with self._locked():
            records = self._load_raw()
            for i, raw in enumerate(records):
                if raw["product_id"] != product_id:
                    continue
                if raw.get("version", 0) != expected_version:
                    return None
                current = self._to_domain(raw)
                updated = StockRecord(
                    product_id=current.product_id,
                    product_name=current.product_name,
                    available_quantity=new_available,
                    version=expected_version + 1,
                )
                records[i] = self._to_raw(updated)
                self._persist_raw(records)
                return updated
            return None

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(record: StockRecord) -> dict:
        return {
            "product_id": record.product_id,
            "product_name": record.product_name,
            "available_quantity": record.available_quantity,
            "version": record.version,
        }

    @staticmethod
    def _to_domain(raw: dict) -> StockRecord:
        return StockRecord(
            product_id=raw["product_id"],
            product_name=raw.get("product_name", raw["product_id"]),
            available_quantity=raw["available_quantity"],
            version=raw.get("version", 0),
        )
