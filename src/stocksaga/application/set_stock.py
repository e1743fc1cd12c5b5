"""Application service: Set Stock use case."""

from __future__ import annotations

from stocksaga.application.dto import StockLineDTO
from stocksaga.domain.repository.stock_repository import StockRepository
from stocksaga.domain.service.stock_ledger import StockLedger


class SetStockHandler:

    def __init__(self, stock_repo: StockRepository, ledger: StockLedger) -> None:
        self._stock_repo = stock_repo
        self._ledger = ledger

    def handle(self, product_id: str, product_name: str | None, quantity: int) -> StockLineDTO:
        """Open stock for a new product, or overwrite the available quantity."""
        existing = self._stock_repo.get_by_product_id(product_id)
        if existing is None:
            record = self._ledger.open_stock(product_id, product_name or product_id, quantity)
        else:
            record = self._ledger.set_available(product_id, quantity)

        return StockLineDTO(
            product_id=record.product_id,
            product_name=record.product_name,
            available=record.available_quantity,
            version=record.version,
        )
