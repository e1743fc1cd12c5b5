"""InboxEntry — the record that an inbound event has been taken in."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class InboxEntry:
    """Keyed by ``event_id``; also an audit trail of what handling decided.

    ``outcome`` and ``details`` stay empty until the saga step finishes.
    """

    event_id: str
    event_type: str
    order_id: str
    correlation_id: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: str | None = None
    details: str = ""
