"""Per-event observability context threaded through every saga step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from stocksaga.domain.model.events import InboundEvent, event_type_of


@dataclass(frozen=True)
class SagaContext:
    event_id: str
    event_type: str
    correlation_id: str | None
    log: Any

    @staticmethod
    def for_event(event: InboundEvent, logger: Any = None) -> SagaContext:
        base = logger if logger is not None else structlog.get_logger("stocksaga.saga")
        return SagaContext(
            event_id=event.event_id,
            event_type=event_type_of(event),
            correlation_id=event.correlation_id,
            log=base.bind(
                event_id=event.event_id,
                event_type=event_type_of(event),
                order_id=event.order_id,
                correlation_id=event.correlation_id,
            ),
        )

    def bind(self, **values: Any) -> SagaContext:
        return SagaContext(
            event_id=self.event_id,
            event_type=self.event_type,
            correlation_id=self.correlation_id,
            log=self.log.bind(**values),
        )
