"""Application service: Consume Event use case.

The entry point for the message transport.  Each inbound message goes
through validation, the dedup gate and the saga engine, and comes back
as a Delivery telling the transport whether to acknowledge it.
"""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from stocksaga.application.dto import Delivery
from stocksaga.domain.exceptions import TransientError, ValidationError
from stocksaga.domain.model.events import parse_event
from stocksaga.domain.model.outcome import OutcomeKind, SagaOutcome
from stocksaga.domain.service.context import SagaContext
from stocksaga.domain.service.dedup_gate import Admission, DedupGate
from stocksaga.domain.service.saga_engine import ReservationSagaEngine


class EventConsumer:

    def __init__(
        self,
        gate: DedupGate,
        engine: ReservationSagaEngine,
        logger: Any = None,
    ) -> None:
        self._gate = gate
        self._engine = engine
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def deliver(self, raw: Any) -> Delivery:
        """Handle one inbound message.

        Steps:
        1. Parse it; a malformed message is acknowledged as INVALID and
           never reaches the gate.
        2. Admit it through the dedup gate; a repeat is acknowledged as a
           no-op without touching any state.
        3. Run the saga engine.
        4. On a transient outcome, forget the admission and leave the
           message unacknowledged so the redelivery runs again.
        """
        try:
            event = parse_event(raw)
        except ValidationError as exc:
            event_id = raw.get("event_id") if isinstance(raw, dict) else None
            event_type = raw.get("type") if isinstance(raw, dict) else None
            outcome = SagaOutcome(
                event_id=str(event_id or ""),
                event_type=str(event_type or "unknown"),
                kind=OutcomeKind.INVALID,
                detail=str(exc),
            )
            self._logger.warning("Rejected malformed event", event_id=event_id, error=str(exc))
            return Delivery(ack=True, outcome=outcome)

        ctx = SagaContext.for_event(event, self._logger)

        try:
            admission = self._gate.admit(event)
        except TransientError as exc:
            ctx.log.warning("Inbox unavailable, event will be redelivered", error=str(exc))
            outcome = SagaOutcome(
                event_id=event.event_id,
                event_type=ctx.event_type,
                kind=OutcomeKind.TRANSIENT,
                detail=str(exc),
            )
            return Delivery(ack=False, outcome=outcome)

        if admission is Admission.ALREADY_PROCESSED:
            ctx.log.debug("Duplicate delivery skipped")
            outcome = SagaOutcome(
                event_id=event.event_id,
                event_type=ctx.event_type,
                kind=OutcomeKind.NO_OP,
                detail="already processed",
            )
            return Delivery(ack=True, outcome=outcome)

        outcome = self._engine.handle(event, ctx)

        try:
            if outcome.kind is OutcomeKind.TRANSIENT:
                self._gate.forget(event.event_id)
            else:
                self._gate.complete(event.event_id, outcome)
        except TransientError as exc:
            ctx.log.error("Could not update inbox entry", error=str(exc))
        return Delivery(ack=outcome.should_ack, outcome=outcome)

    def deliver_many(self, raws: Iterable[Any]) -> list[Delivery]:
        return [self.deliver(raw) for raw in raws]
