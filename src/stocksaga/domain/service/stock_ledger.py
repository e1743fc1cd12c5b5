"""Domain service: Stock Ledger.

The ledger is the only writer of ``available_quantity``.  Every mutation
is a read / derive / compare-and-swap cycle against the record's version,
so concurrent callers for the same product serialize on the version check
while unrelated products never contend.

A lost swap is retried with exponential backoff, up to ``max_attempts``
cycles; past that the caller gets a ConcurrencyConflictError and the
event is left for redelivery.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from stocksaga.domain.exceptions import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    ValidationError,
)
from stocksaga.domain.model.stock import StockRecord
from stocksaga.domain.model.value_objects import Quantity
from stocksaga.domain.repository.stock_repository import StockRepository


@dataclass(frozen=True)
class ReserveResult:
    """``ok`` is True when the hold was taken.

    ``available`` is the quantity left afterwards on success, or the
    quantity observed at rejection time on failure.
    """

    ok: bool
    available: int


class StockLedger:

    def __init__(
        self,
        stock_repo: StockRepository,
        max_attempts: int = 5,
        base_delay: float = 0.01,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        self._stock_repo = stock_repo
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    # --- Saga vocabulary ------------------------------------------------------

    def try_reserve(self, product_id: str, quantity: int) -> ReserveResult:
        """Take *quantity* units if that many are available.

        Never mutates on rejection.  Raises EntityNotFoundError for an
        unknown product.
        """
        qty = Quantity(quantity).value

        def step(record: StockRecord) -> int | ReserveResult:
            if not record.can_reserve(qty):
                return ReserveResult(ok=False, available=record.available_quantity)
            return record.after_reserve(qty)

        outcome = self._swap(product_id, step)
        if isinstance(outcome, ReserveResult):
            return outcome
        return ReserveResult(ok=True, available=outcome.available_quantity)

    def release(self, product_id: str, quantity: int) -> StockRecord:
        """Return *quantity* held units to availability.

        Not deduplicated here: the caller guarantees one call per logical
        release by checking the reservation status first.
        """
        qty = Quantity(quantity).value
        return self._swap(product_id, lambda record: record.after_release(qty))

    def confirm_debit(self, product_id: str, quantity: int) -> StockRecord:
        """Make a held quantity permanent.

        The decrement already happened at reservation time, so stock is left
        untouched; this only checks the product still exists.
        """
        Quantity(quantity)
        record = self._stock_repo.get_by_product_id(product_id)
        if record is None:
            raise EntityNotFoundError(f"No stock record for product '{product_id}'")
        return record

    # --- Stock administration -------------------------------------------------

    def open_stock(self, product_id: str, product_name: str, quantity: int) -> StockRecord:
        """Create the stock record for a newly listed product."""
        if quantity < 0:
            raise ValidationError("Stock quantity cannot be negative")
        record = StockRecord(
            product_id=product_id,
            product_name=product_name,
            available_quantity=quantity,
        )
        if not self._stock_repo.add(record):
            raise ValidationError(f"Stock for product '{product_id}' already exists")
        return record

    def set_available(self, product_id: str, quantity: int) -> StockRecord:
        """Overwrite the available quantity (operator correction)."""
        if quantity < 0:
            raise ValidationError("Stock quantity cannot be negative")
        return self._swap(product_id, lambda record: quantity)

    def available(self, product_id: str) -> int:
        record = self._stock_repo.get_by_product_id(product_id)
        if record is None:
            raise EntityNotFoundError(f"No stock record for product '{product_id}'")
        return record.available_quantity

    # --- Compare-and-swap loop ------------------------------------------------

    def _swap(self, product_id: str, step: Callable[[StockRecord], object]):
        """Run *step* against the latest snapshot until its write lands.

        *step* returns the new available quantity, or any other value to
        stop without writing (that value is handed back as-is).
        """
        delay = self._base_delay
        for attempt in range(1, self._max_attempts + 1):
            record = self._stock_repo.get_by_product_id(product_id)
            if record is None:
                raise EntityNotFoundError(f"No stock record for product '{product_id}'")

            new_available = step(record)
            if not isinstance(new_available, int):
                return new_available

            written = self._stock_repo.compare_and_swap(
                product_id, record.version, new_available
            )
            if written is not None:
                return written

            if attempt < self._max_attempts:
                self._sleep(delay)
                delay *= 2

        raise ConcurrencyConflictError(
            f"Stock for product '{product_id}' kept changing; "
            f"gave up after {self._max_attempts} attempts"
        )
