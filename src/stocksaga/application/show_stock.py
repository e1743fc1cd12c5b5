"""Application service: Show Stock use case (query)."""

from __future__ import annotations

from stocksaga.application.dto import StockLineDTO
from stocksaga.domain.repository.stock_repository import StockRepository


class ShowStockHandler:

    def __init__(self, stock_repo: StockRepository) -> None:
        self._stock_repo = stock_repo

    def handle(self) -> list[StockLineDTO]:
        return [
            StockLineDTO(
                product_id=record.product_id,
                product_name=record.product_name,
                available=record.available_quantity,
                version=record.version,
            )
            for record in sorted(self._stock_repo.list_all(), key=lambda r: r.product_name)
        ]
