"""StockRecord — available quantity per product.

The record is a snapshot: the Stock Ledger reads one, derives the next
quantity, and writes it back only if ``version`` is still current.
"""

from __future__ import annotations

from dataclasses import dataclass

from stocksaga.domain.exceptions import InvariantViolationError, ValidationError


@dataclass(frozen=True)
class StockRecord:
    """Per-product stock snapshot.

    Invariants:
    - ``available_quantity`` is always >= 0
    - ``version`` grows by one with every successful write
    """

    product_id: str
    product_name: str
    available_quantity: int
    version: int = 0

    def __post_init__(self) -> None:
        if self.available_quantity < 0:
            raise InvariantViolationError(
                f"Stock for {self.product_name} cannot be negative "
                f"(got {self.available_quantity})"
            )

    def can_reserve(self, quantity: int) -> bool:
        return self.available_quantity >= quantity

    def after_reserve(self, quantity: int) -> int:
        """Quantity left once *quantity* units are held."""
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        if not self.can_reserve(quantity):
            raise InvariantViolationError(
                f"Cannot hold {quantity} of {self.product_name} "
                f"(only {self.available_quantity} available)"
            )
        return self.available_quantity - quantity

    def after_release(self, quantity: int) -> int:
        """Quantity once *quantity* held units come back."""
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        return self.available_quantity + quantity
