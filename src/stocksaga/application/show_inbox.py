"""Application service: Show Inbox use case (query)."""

from __future__ import annotations

from stocksaga.application.dto import InboxEntryDTO
from stocksaga.domain.service.dedup_gate import DedupGate


class ShowInboxHandler:

    def __init__(self, gate: DedupGate) -> None:
        self._gate = gate

    def handle(self) -> list[InboxEntryDTO]:
        return [
            InboxEntryDTO(
                event_id=entry.event_id,
                event_type=entry.event_type,
                order_id=entry.order_id,
                received_at=entry.received_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
                outcome=entry.outcome,
                details=entry.details,
            )
            for entry in self._gate.entries()
        ]
