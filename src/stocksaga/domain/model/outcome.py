"""Structured results of handling one inbound event.

The consumption loop decides acknowledgement from ``OutcomeKind`` alone,
never from exception types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class OutcomeKind(Enum):
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"
    NO_OP = "NO_OP"
    FATAL = "FATAL"
    TRANSIENT = "TRANSIENT"
    INVALID = "INVALID"


# Higher wins when item outcomes are folded into one event outcome.
_SEVERITY = {
    OutcomeKind.NO_OP: 0,
    OutcomeKind.SUCCESS: 1,
    OutcomeKind.REJECTED: 2,
    OutcomeKind.INVALID: 3,
    OutcomeKind.FATAL: 4,
    OutcomeKind.TRANSIENT: 5,
}


@dataclass(frozen=True)
class ItemOutcome:
    """What happened to one order-product pair."""

    product_id: str
    kind: OutcomeKind
    detail: str = ""
    reservation_id: str | None = None
    anomaly: bool = False


@dataclass(frozen=True)
class SagaOutcome:
    event_id: str
    event_type: str
    kind: OutcomeKind
    items: list[ItemOutcome] = field(default_factory=list)
    detail: str = ""

    @staticmethod
    def from_items(
        event_id: str,
        event_type: str,
        items: list[ItemOutcome],
        detail: str = "",
    ) -> SagaOutcome:
        kind = max(
            (item.kind for item in items),
            key=_SEVERITY.__getitem__,
            default=OutcomeKind.NO_OP,
        )
        return SagaOutcome(event_id, event_type, kind, list(items), detail)

    @property
    def should_ack(self) -> bool:
        """Transient failures are left unacknowledged so the transport redelivers."""
        return self.kind is not OutcomeKind.TRANSIENT

    @property
    def needs_review(self) -> bool:
        return self.kind is OutcomeKind.FATAL or any(
            item.anomaly or item.kind is OutcomeKind.FATAL for item in self.items
        )

    def summary(self) -> str:
        if self.detail:
            return self.detail
        return "; ".join(
            f"{item.product_id}: {item.kind.value}"
            + (f" ({item.detail})" if item.detail else "")
            for item in self.items
        )
