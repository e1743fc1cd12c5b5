"""Domain service: Event Inbox / Dedup Gate.

The gate, not the business logic, is the idempotency boundary for
at-least-once delivery: an event id is admitted exactly once, atomically,
and every later delivery of the same id is turned away before the saga
engine sees it.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum

from stocksaga.domain.model.events import InboundEvent, event_type_of
from stocksaga.domain.model.inbox import InboxEntry
from stocksaga.domain.model.outcome import SagaOutcome
from stocksaga.domain.repository.inbox_repository import InboxRepository


class Admission(Enum):
    ADMITTED = "Admitted"
    ALREADY_PROCESSED = "AlreadyProcessed"


class DedupGate:

    def __init__(self, inbox_repo: InboxRepository) -> None:
        self._inbox_repo = inbox_repo

    def admit(self, event: InboundEvent) -> Admission:
        entry = InboxEntry(
            event_id=event.event_id,
            event_type=event_type_of(event),
            order_id=event.order_id,
            correlation_id=event.correlation_id,
        )
        if self._inbox_repo.add_if_absent(entry):
            return Admission.ADMITTED
        return Admission.ALREADY_PROCESSED

    def complete(self, event_id: str, outcome: SagaOutcome) -> None:
        """Record how the admitted event was handled."""
        entry = self._inbox_repo.get(event_id)
        if entry is None:
            return
        self._inbox_repo.save(
            replace(entry, outcome=outcome.kind.value, details=outcome.summary())
        )

    def forget(self, event_id: str) -> None:
        """Drop an admission so a redelivery of the event runs again.

        Used only when handling failed transiently and the event is not
        acknowledged.
        """
        self._inbox_repo.remove(event_id)

    def entries(self) -> list[InboxEntry]:
        return self._inbox_repo.list_all()
