"""JSON-file-backed implementation of InboxRepository."""

from __future__ import annotations

from datetime import datetime

from stocksaga.domain.model.inbox import InboxEntry
from stocksaga.domain.repository.inbox_repository import InboxRepository
from stocksaga.infrastructure.persistence.json_file import JsonFileRepository


class JsonInboxRepository(JsonFileRepository, InboxRepository):

    def get(self, event_id: str) -> InboxEntry | None:
        for raw in self._load_raw():
            if raw["event_id"] == event_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[InboxEntry]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def add_if_absent(self, entry: InboxEntry) -> bool:
        with self._locked():
            records = self._load_raw()
            if any(raw["event_id"] == entry.event_id for raw in records):
                return False
            records.append(self._to_raw(entry))
            self._persist_raw(records)
            return True

    def save(self, entry: InboxEntry) -> None:
        with self._locked():
            records = self._load_raw()
            for i, raw in enumerate(records):
                if raw["event_id"] == entry.event_id:
                    records[i] = self._to_raw(entry)
                    break
            else:
                records.append(self._to_raw(entry))
            self._persist_raw(records)

    def remove(self, event_id: str) -> None:
        with self._locked():
            records = self._load_raw()
            kept = [raw for raw in records if raw["event_id"] != event_id]
            if len(kept) != len(records):
                self._persist_raw(kept)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(entry: InboxEntry) -> dict:
        return {
            "event_id": entry.event_id,
            "event_type": entry.event_type,
            "order_id": entry.order_id,
            "correlation_id": entry.correlation_id,
            "received_at": entry.received_at.isoformat(),
            "outcome": entry.outcome,
            "details": entry.details,
        }

    @staticmethod
    def _to_domain(raw: dict) -> InboxEntry:
        return InboxEntry(
            event_id=raw["event_id"],
            event_type=raw["event_type"],
            order_id=raw["order_id"],
            correlation_id=raw.get("correlation_id"),
            received_at=datetime.fromisoformat(raw["received_at"]),
            outcome=raw.get("outcome"),
            details=raw.get("details", ""),
        )
