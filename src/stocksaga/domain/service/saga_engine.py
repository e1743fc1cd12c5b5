"""Domain service: Reservation Saga Engine.

Turns order-lifecycle events into reservation transitions:

    OrderItemReserveRequested ──► TryReserve, then create row    (Reserved)
    OrderConfirmed            ──► TransitionTo, then ConfirmDebit (Debited)
    OrderCancelled /
    OrderFulfillmentFailed    ──► Release, then TransitionTo      (Released)

Each transition handler re-reads the row first.  Already being in the
target state is an idempotent no-op; being in the *other* terminal state
is an anomaly that is reported but never re-mutates stock.

Stock is always touched before the row.  When the row write fails after
the stock moved, the stock move is undone before the outcome is reported.

The engine does not raise for business or infrastructure problems: every
event yields a SagaOutcome, one ItemOutcome per order-product pair, and
a failure on one pair does not stop the others.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from stocksaga.domain.exceptions import (
    DomainException,
    DuplicateReservationError,
    EntityNotFoundError,
    InvalidTransitionError,
    InvariantViolationError,
    TransientError,
)
from stocksaga.domain.model.events import (
    InboundEvent,
    OrderCancelled,
    OrderConfirmed,
    OrderFulfillmentFailed,
    OrderItemReserveRequested,
    StockDebited,
    StockReleased,
    StockReservationFailed,
    StockReserved,
    event_type_of,
)
from stocksaga.domain.model.outcome import ItemOutcome, OutcomeKind, SagaOutcome
from stocksaga.domain.model.reservation import ReservationStatus, StockReservation
from stocksaga.domain.service.context import SagaContext
from stocksaga.domain.service.notifier import OutboundNotifier
from stocksaga.domain.service.reservation_store import ReservationStore
from stocksaga.domain.service.stock_ledger import StockLedger

DUPLICATE_RESERVATION = "duplicate_reservation"
INSUFFICIENT_STOCK = "insufficient_stock"
UNKNOWN_PRODUCT = "unknown_product"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReservationSagaEngine:

    def __init__(
        self,
        ledger: StockLedger,
        store: ReservationStore,
        notifier: OutboundNotifier,
        clock: Callable[[], datetime] = _utcnow,
        logger: Any = None,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._logger = logger

    def handle(self, event: InboundEvent, ctx: SagaContext | None = None) -> SagaOutcome:
        ctx = ctx or SagaContext.for_event(event, self._logger)

        if isinstance(event, OrderItemReserveRequested):
            item = self._guarded(event.product_id, ctx, lambda: self._reserve(event, ctx))
            outcome = SagaOutcome.from_items(event.event_id, ctx.event_type, [item])
        elif isinstance(event, OrderConfirmed):
            outcome = self._fan_out(event, ctx, self._debit_one)
        elif isinstance(event, (OrderCancelled, OrderFulfillmentFailed)):
            outcome = self._fan_out(event, ctx, self._release_one)
        else:
            raise TypeError(f"Unhandled event type: {event_type_of(event)}")

        self._log_outcome(outcome, ctx)
        return outcome

    # --- Reserve --------------------------------------------------------------

    def _reserve(self, event: OrderItemReserveRequested, ctx: SagaContext) -> ItemOutcome:
        pid = event.product_id
        existing = self._find(event.order_id, pid)
        if existing is not None and existing.is_active:
            ctx.log.info("Order line already holds a reservation", reservation_id=existing.id)
            return ItemOutcome(pid, OutcomeKind.REJECTED, DUPLICATE_RESERVATION, existing.id)

        try:
            result = self._ledger.try_reserve(pid, event.quantity)
        except EntityNotFoundError:
            self._notifier.publish(
                StockReservationFailed(
                    order_id=event.order_id,
                    product_id=pid,
                    requested_quantity=event.quantity,
                    available_quantity=0,
                    correlation_id=event.correlation_id,
                )
            )
            ctx.log.info("Reservation rejected for unknown product")
            return ItemOutcome(pid, OutcomeKind.REJECTED, UNKNOWN_PRODUCT)

        if not result.ok:
            self._notifier.publish(
                StockReservationFailed(
                    order_id=event.order_id,
                    product_id=pid,
                    requested_quantity=event.quantity,
                    available_quantity=result.available,
                    correlation_id=event.correlation_id,
                )
            )
            ctx.log.info(
                "Insufficient stock for reservation",
                requested=event.quantity,
                available=result.available,
            )
            return ItemOutcome(pid, OutcomeKind.REJECTED, INSUFFICIENT_STOCK)

        try:
            reservation = self._store.create(
                order_id=event.order_id,
                product_id=pid,
                product_name=event.product_name,
                quantity=event.quantity,
                correlation_id=event.correlation_id,
                at=self._clock(),
            )
        except (DuplicateReservationError, TransientError) as exc:
            if not self._give_back(pid, event.quantity, ctx):
                return ItemOutcome(
                    pid, OutcomeKind.FATAL, "stock held without a reservation row"
                )
            if isinstance(exc, TransientError):
                raise
            ctx.log.info("Concurrent reservation won for order line")
            return ItemOutcome(pid, OutcomeKind.REJECTED, DUPLICATE_RESERVATION)

        self._notifier.publish(
            StockReserved(
                order_id=event.order_id,
                product_id=pid,
                quantity=reservation.quantity,
                reservation_id=reservation.id,
                correlation_id=event.correlation_id,
            )
        )
        ctx.log.info(
            "Stock reserved",
            reservation_id=reservation.id,
            quantity=reservation.quantity,
            available_after=result.available,
        )
        return ItemOutcome(pid, OutcomeKind.SUCCESS, "reserved", reservation.id)

    def _give_back(self, product_id: str, quantity: int, ctx: SagaContext) -> bool:
        try:
            self._ledger.release(product_id, quantity)
        except DomainException as exc:
            ctx.log.error(
                "Could not return held stock; reconciliation required",
                quantity=quantity,
                error=str(exc),
                critical=True,
            )
            return False
        return True

    # --- Confirm --------------------------------------------------------------

    def _debit_one(
        self,
        reservation: StockReservation,
        event: InboundEvent,
        ctx: SagaContext,
    ) -> ItemOutcome:
        current = self._store.get_by_id(reservation.id)
        if current.status is not ReservationStatus.RESERVED:
            return self._already_terminal(current, ReservationStatus.DEBITED, ctx)

        try:
            self._store.transition_to(current.id, ReservationStatus.DEBITED, self._clock())
        except InvalidTransitionError:
            latest = self._store.get_by_id(current.id)
            return self._already_terminal(latest, ReservationStatus.DEBITED, ctx)

        self._ledger.confirm_debit(current.product_id, current.quantity)
        self._notifier.publish(
            StockDebited(
                order_id=current.order_id,
                product_id=current.product_id,
                quantity=current.quantity,
                correlation_id=event.correlation_id,
            )
        )
        ctx.log.info("Reservation debited", quantity=current.quantity)
        return ItemOutcome(current.product_id, OutcomeKind.SUCCESS, "debited", current.id)

    # --- Cancel / fail --------------------------------------------------------

    def _release_one(
        self,
        reservation: StockReservation,
        event: InboundEvent,
        ctx: SagaContext,
    ) -> ItemOutcome:
        current = self._store.get_by_id(reservation.id)
        if current.status is not ReservationStatus.RESERVED:
            return self._already_terminal(current, ReservationStatus.RELEASED, ctx)

        self._ledger.release(current.product_id, current.quantity)
        try:
            self._store.transition_to(current.id, ReservationStatus.RELEASED, self._clock())
        except (InvalidTransitionError, TransientError) as exc:
            # The row did not move, so the units just returned must be held again.
            try:
                taken_back = self._ledger.try_reserve(current.product_id, current.quantity)
            except DomainException as undo_exc:
                raise InvariantViolationError(
                    f"Released {current.quantity} units for reservation {current.id} "
                    f"but could not take them back: {undo_exc}"
                ) from exc
            if not taken_back.ok:
                raise InvariantViolationError(
                    f"Released {current.quantity} units for reservation {current.id} "
                    f"but could not take them back"
                ) from exc
            if isinstance(exc, TransientError):
                raise
            latest = self._store.get_by_id(current.id)
            return self._already_terminal(latest, ReservationStatus.RELEASED, ctx)

        self._notifier.publish(
            StockReleased(
                order_id=current.order_id,
                product_id=current.product_id,
                quantity=current.quantity,
                reservation_id=current.id,
                correlation_id=event.correlation_id,
            )
        )
        reason = event.reason if isinstance(event, OrderCancelled) else "fulfillment_failed"
        ctx.log.info("Reservation released", quantity=current.quantity, reason=reason)
        return ItemOutcome(current.product_id, OutcomeKind.SUCCESS, "released", current.id)

    # --- Helpers --------------------------------------------------------------

    def _already_terminal(
        self,
        reservation: StockReservation,
        target: ReservationStatus,
        ctx: SagaContext,
    ) -> ItemOutcome:
        if reservation.status is target:
            ctx.log.debug("Reservation already in target state", status=target.value)
            return ItemOutcome(
                reservation.product_id,
                OutcomeKind.NO_OP,
                f"already {target.value}",
                reservation.id,
            )
        ctx.log.warning(
            "Reservation already in the opposite terminal state",
            status=reservation.status.value,
            requested=target.value,
        )
        return ItemOutcome(
            reservation.product_id,
            OutcomeKind.NO_OP,
            f"already {reservation.status.value}; {target.value} ignored",
            reservation.id,
            anomaly=True,
        )

    def _find(self, order_id: str, product_id: str) -> StockReservation | None:
        try:
            return self._store.get(order_id, product_id)
        except EntityNotFoundError:
            return None

    def _fan_out(
        self,
        event: InboundEvent,
        ctx: SagaContext,
        step: Callable[[StockReservation, InboundEvent, SagaContext], ItemOutcome],
    ) -> SagaOutcome:
        try:
            reservations = self._store.current_for_order(event.order_id)
        except TransientError as exc:
            return SagaOutcome(event.event_id, ctx.event_type, OutcomeKind.TRANSIENT, detail=str(exc))

        if not reservations:
            return SagaOutcome(
                event.event_id,
                ctx.event_type,
                OutcomeKind.NO_OP,
                detail="no reservations for order",
            )

        items = []
        for reservation in reservations:
            item_ctx = ctx.bind(reservation_id=reservation.id, product_id=reservation.product_id)
            items.append(
                self._guarded(
                    reservation.product_id,
                    item_ctx,
                    lambda r=reservation, c=item_ctx: step(r, event, c),
                )
            )
        return SagaOutcome.from_items(event.event_id, ctx.event_type, items)

    @staticmethod
    def _guarded(
        product_id: str,
        ctx: SagaContext,
        action: Callable[[], ItemOutcome],
    ) -> ItemOutcome:
        """Fold the exceptions one order line can raise into its outcome."""
        try:
            return action()
        except TransientError as exc:
            ctx.log.warning("Transient failure, event will be redelivered", error=str(exc))
            return ItemOutcome(product_id, OutcomeKind.TRANSIENT, str(exc))
        except DomainException as exc:
            ctx.log.error(
                "Invariant violated; flagged for review",
                error=str(exc),
                error_type=type(exc).__name__,
                critical=True,
            )
            return ItemOutcome(product_id, OutcomeKind.FATAL, str(exc))

    @staticmethod
    def _log_outcome(outcome: SagaOutcome, ctx: SagaContext) -> None:
        fields = {"outcome": outcome.kind.value, "summary": outcome.summary()}
        if outcome.needs_review:
            ctx.log.error("Event handled with issues needing review", **fields)
        elif outcome.kind is OutcomeKind.NO_OP:
            ctx.log.debug("Event required no changes", **fields)
        else:
            ctx.log.info("Event handled", **fields)
