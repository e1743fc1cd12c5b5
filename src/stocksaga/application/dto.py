"""Data Transfer Objects handed from the application layer to the CLI.

Plain frozen containers, so the CLI never formats a domain object
directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from stocksaga.domain.model.outcome import SagaOutcome


@dataclass(frozen=True)
class StockLineDTO:
    product_id: str
    product_name: str
    available: int
    version: int


@dataclass(frozen=True)
class ReservationDTO:
    id: str
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    status: str
    reserved_at: str
    processed_at: str | None
    correlation_id: str | None


@dataclass(frozen=True)
class InboxEntryDTO:
    event_id: str
    event_type: str
    order_id: str
    received_at: str
    outcome: str | None
    details: str


@dataclass(frozen=True)
class Delivery:
    """Output: what the transport should do with one inbound message."""

    ack: bool
    outcome: SagaOutcome
