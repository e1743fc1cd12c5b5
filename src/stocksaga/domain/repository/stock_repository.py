"""Abstract repository for StockRecord."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stocksaga.domain.model.stock import StockRecord


class StockRepository(ABC):

    @abstractmethod
    def get_by_product_id(self, product_id: str) -> StockRecord | None:
        """Return the current stock snapshot for a product, or None."""

    @abstractmethod
    def list_all(self) -> list[StockRecord]:
        """Return every stock record."""

    @abstractmethod
    def add(self, record: StockRecord) -> bool:
        """Insert a new record.  Return False if the product already has one."""

    @abstractmethod
    def compare_and_swap(
        self,
        product_id: str,
        expected_version: int,
        new_available: int,
    ) -> StockRecord | None:
        """Write *new_available* only if the stored version is *expected_version*.

        Returns the written record (version bumped by one), or None when
        another writer got there first.
        """
