"""Small validated values used by events and reservations.

Event payloads arrive as loose JSON; these checks run before anything
is built from them, so a quantity in the domain is always a real count.
"""

from __future__ import annotations

from dataclasses import dataclass

from stocksaga.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Quantity:
    """A positive integer quantity.

    Enforces the invariant that you cannot reserve zero or negative units.
    """

    value: int

    def __post_init__(self) -> None:
        # bool is an int subclass; True is not a quantity
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


def require_text(value: object, field_name: str) -> str:
    """Return *value* stripped, or raise if it is missing or blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' is required")
    return value.strip()
