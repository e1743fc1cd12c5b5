"""Abstract repository for InboxEntry."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stocksaga.domain.model.inbox import InboxEntry


class InboxRepository(ABC):

    @abstractmethod
    def get(self, event_id: str) -> InboxEntry | None:
        """Return the entry for an event id, or None."""

    @abstractmethod
    def list_all(self) -> list[InboxEntry]:
        """Return every entry, oldest first."""

    @abstractmethod
    def add_if_absent(self, entry: InboxEntry) -> bool:
        """Insert *entry*; False if its event id is already present."""

    @abstractmethod
    def save(self, entry: InboxEntry) -> None:
        """Overwrite an existing entry."""

    @abstractmethod
    def remove(self, event_id: str) -> None:
        """Delete the entry for an event id, if any."""
