"""Tests for the ReservationSagaEngine.

Each test builds a SagaRig (in-memory repositories, real ledger, store
and engine) and drives it with inbound events directly.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
import structlog

from stocksaga.domain.model.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderFulfillmentFailed,
    OrderItemReserveRequested,
    StockDebited,
    StockReleased,
    StockReservationFailed,
    StockReserved,
)
from stocksaga.domain.model.outcome import OutcomeKind
from stocksaga.domain.model.reservation import ReservationStatus
from stocksaga.domain.service.context import SagaContext
from stocksaga.domain.service.reservation_store import ReservationStore
from stocksaga.domain.service.saga_engine import (
    DUPLICATE_RESERVATION,
    INSUFFICIENT_STOCK,
    UNKNOWN_PRODUCT,
    ReservationSagaEngine,
)
from tests.fakes import FIXED_NOW, FakeReservationRepository, SagaRig

_counter = iter(range(1, 1_000_000))


def _eid() -> str:
    return f"e-{next(_counter)}"


def _reserve(order_id="O1", product_id="P1", quantity=3) -> OrderItemReserveRequested:
    return OrderItemReserveRequested(
        event_id=_eid(),
        order_id=order_id,
        product_id=product_id,
        product_name=f"Product {product_id}",
        quantity=quantity,
        correlation_id=f"corr-{order_id}",
    )


def _confirm(order_id="O1") -> OrderConfirmed:
    return OrderConfirmed(event_id=_eid(), order_id=order_id, correlation_id=f"corr-{order_id}")


def _cancel(order_id="O1", reason="customer") -> OrderCancelled:
    return OrderCancelled(
        event_id=_eid(), order_id=order_id, reason=reason, correlation_id=f"corr-{order_id}"
    )


class RacingReservationRepository(FakeReservationRepository):
    """Lets another writer land first on the next conditional replace."""

    def __init__(self) -> None:
        super().__init__()
        self.race_to: ReservationStatus | None = None
        self.on_race = None

    def replace_if_status(self, reservation, expected_status):
        if self.race_to is not None:
            current = self._store[reservation.id]
            self._store[reservation.id] = current.transition_to(self.race_to, FIXED_NOW)
            self.race_to = None
            if self.on_race is not None:
                self.on_race()
        return super().replace_if_status(reservation, expected_status)


def _racing_rig(stock: dict[str, int]) -> SagaRig:
    rig = SagaRig(stock)
    rig.reservation_repo = RacingReservationRepository()
    rig.store = ReservationStore(rig.reservation_repo)
    rig.engine = ReservationSagaEngine(
        rig.ledger, rig.store, rig.notifier, clock=lambda: FIXED_NOW
    )
    return rig


class TestReserve:

    def test_reserve_holds_stock(self):
        rig = SagaRig({"P1": 10})
        outcome = rig.engine.handle(_reserve(quantity=3))

        assert outcome.kind is OutcomeKind.SUCCESS
        assert rig.available("P1") == 7
        reservation = rig.store.get("O1", "P1")
        assert reservation.status is ReservationStatus.RESERVED
        assert reservation.quantity == 3
        assert reservation.correlation_id == "corr-O1"
        assert reservation.reserved_at == FIXED_NOW

    def test_reserve_publishes_stock_reserved(self):
        rig = SagaRig({"P1": 10})
        outcome = rig.engine.handle(_reserve(quantity=3))

        [event] = rig.notifier.of_type(StockReserved)
        assert event.reservation_id == outcome.items[0].reservation_id
        assert (event.order_id, event.quantity, event.correlation_id) == ("O1", 3, "corr-O1")

    def test_insufficient_stock_rejected_without_side_effects(self):
        rig = SagaRig({"P1": 2})
        outcome = rig.engine.handle(_reserve(quantity=3))

        assert outcome.kind is OutcomeKind.REJECTED
        assert outcome.items[0].detail == INSUFFICIENT_STOCK
        assert rig.available("P1") == 2
        assert rig.store.list_for_order("O1") == []
        [failed] = rig.notifier.of_type(StockReservationFailed)
        assert (failed.requested_quantity, failed.available_quantity) == (3, 2)

    def test_unknown_product_rejected(self):
        rig = SagaRig({"P1": 10})
        outcome = rig.engine.handle(_reserve(product_id="P9"))

        assert outcome.kind is OutcomeKind.REJECTED
        assert outcome.items[0].detail == UNKNOWN_PRODUCT
        [failed] = rig.notifier.of_type(StockReservationFailed)
        assert failed.available_quantity == 0

    def test_second_request_for_active_line_rejected(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=3))
        outcome = rig.engine.handle(_reserve(quantity=3))

        assert outcome.kind is OutcomeKind.REJECTED
        assert outcome.items[0].detail == DUPLICATE_RESERVATION
        assert rig.available("P1") == 7
        assert len(rig.store.list_for_order("O1")) == 1
        assert len(rig.notifier.of_type(StockReserved)) == 1

    def test_transient_row_failure_gives_stock_back(self):
        rig = SagaRig({"P1": 10})
        rig.reservation_repo.fail_writes = True
        outcome = rig.engine.handle(_reserve(quantity=3))

        assert outcome.kind is OutcomeKind.TRANSIENT
        assert not outcome.should_ack
        assert rig.available("P1") == 10
        assert rig.notifier.events == []

    def test_concurrent_requests_for_last_units(self):
        rig = SagaRig({"P1": 5})
        events = [_reserve(order_id="X", quantity=3), _reserve(order_id="Y", quantity=3)]

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(rig.engine.handle, events))

        kinds = sorted(o.kind.value for o in outcomes)
        assert kinds == ["REJECTED", "SUCCESS"]
        assert rig.available("P1") == 2
        [failed] = rig.notifier.of_type(StockReservationFailed)
        assert failed.requested_quantity == 3
        assert failed.available_quantity == 2
        active = rig.store.list_active_older_than(FIXED_NOW.replace(year=2100))
        assert len(active) == 1

    def test_many_orders_never_oversell(self):
        rig = SagaRig({"P1": 20})
        events = [_reserve(order_id=f"O{i}", quantity=1 + i % 3) for i in range(40)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(rig.engine.handle, events))

        held = sum(
            r.quantity for r in rig.reservation_repo.list_all() if r.is_active
        )
        assert held + rig.available("P1") == 20
        assert rig.available("P1") >= 0
        successes = [o for o in outcomes if o.kind is OutcomeKind.SUCCESS]
        assert len(successes) == len(rig.reservation_repo.list_all())


class TestConfirm:

    def test_confirm_debits(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=3))
        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.SUCCESS
        reservation = rig.store.get("O1", "P1")
        assert reservation.status is ReservationStatus.DEBITED
        assert reservation.processed_at == FIXED_NOW
        assert rig.available("P1") == 7
        [debited] = rig.notifier.of_type(StockDebited)
        assert debited.quantity == 3

    def test_confirm_twice_is_idempotent(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=3))
        rig.engine.handle(_confirm())
        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.NO_OP
        assert not outcome.needs_review
        assert rig.available("P1") == 7
        assert len(rig.notifier.of_type(StockDebited)) == 1

    def test_confirm_without_reservations(self):
        rig = SagaRig({"P1": 10})
        outcome = rig.engine.handle(_confirm("O404"))

        assert outcome.kind is OutcomeKind.NO_OP
        assert outcome.detail == "no reservations for order"
        assert outcome.should_ack

    def test_confirm_after_release_is_an_anomaly(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.engine.handle(_cancel())
        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.NO_OP
        assert outcome.items[0].anomaly
        assert outcome.needs_review
        assert rig.available("P1") == 10
        assert rig.store.get("O1", "P1").status is ReservationStatus.RELEASED
        assert rig.notifier.of_type(StockDebited) == []

    def test_lost_race_to_release(self):
        rig = _racing_rig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.reservation_repo.race_to = ReservationStatus.RELEASED
        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.NO_OP
        assert outcome.items[0].anomaly
        assert rig.notifier.of_type(StockDebited) == []


class TestRelease:

    def test_cancel_returns_stock(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        assert rig.available("P1") == 6

        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.SUCCESS
        assert rig.available("P1") == 10
        reservation = rig.store.get("O1", "P1")
        assert reservation.status is ReservationStatus.RELEASED
        assert reservation.processed_at == FIXED_NOW
        [released] = rig.notifier.of_type(StockReleased)
        assert released.reservation_id == reservation.id

    def test_fulfillment_failure_returns_stock(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        outcome = rig.engine.handle(
            OrderFulfillmentFailed(event_id=_eid(), order_id="O1")
        )

        assert outcome.kind is OutcomeKind.SUCCESS
        assert rig.available("P1") == 10

    def test_cancel_twice_returns_stock_once(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.engine.handle(_cancel())
        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.NO_OP
        assert not outcome.needs_review
        assert rig.available("P1") == 10

    def test_cancel_after_debit_keeps_stock(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=3))
        rig.engine.handle(_confirm())
        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.NO_OP
        assert outcome.needs_review
        assert rig.available("P1") == 7
        assert rig.store.get("O1", "P1").status is ReservationStatus.DEBITED

    def test_cancel_before_reserve_then_reserve(self):
        rig = SagaRig({"P1": 10})
        assert rig.engine.handle(_cancel()).kind is OutcomeKind.NO_OP
        rig.engine.handle(_reserve(quantity=2))

        assert rig.store.get("O1", "P1").status is ReservationStatus.RESERVED
        assert rig.available("P1") == 8

    def test_transient_row_failure_takes_units_back(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.reservation_repo.fail_writes = True
        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.TRANSIENT
        assert rig.available("P1") == 6
        assert rig.store.get("O1", "P1").status is ReservationStatus.RESERVED
        assert rig.notifier.of_type(StockReleased) == []

    def test_lost_race_to_debit_takes_units_back(self):
        rig = _racing_rig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.reservation_repo.race_to = ReservationStatus.DEBITED
        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.NO_OP
        assert outcome.items[0].anomaly
        assert rig.available("P1") == 6
        assert rig.notifier.of_type(StockReleased) == []

    def test_units_gone_before_take_back_is_fatal(self):
        rig = _racing_rig({"P1": 10})
        rig.engine.handle(_reserve(quantity=4))
        rig.reservation_repo.race_to = ReservationStatus.DEBITED
        rig.reservation_repo.on_race = lambda: rig.ledger.set_available("P1", 0)
        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.FATAL
        assert outcome.needs_review
        assert outcome.should_ack
        assert "could not take them back" in outcome.items[0].detail


class TestFanOut:

    def test_confirm_covers_every_line(self):
        rig = SagaRig({"P1": 10, "P2": 10})
        rig.engine.handle(_reserve(product_id="P1", quantity=1))
        rig.engine.handle(_reserve(product_id="P2", quantity=2))
        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.SUCCESS
        assert [i.product_id for i in outcome.items] == ["P1", "P2"]
        assert len(rig.notifier.of_type(StockDebited)) == 2

    def test_one_failing_line_does_not_block_others(self):
        rig = SagaRig({"P1": 10, "P2": 10})
        rig.engine.handle(_reserve(product_id="P1", quantity=1))
        rig.engine.handle(_reserve(product_id="P2", quantity=2))
        del rig.stock_repo._store["P2"]

        outcome = rig.engine.handle(_confirm())

        kinds = {i.product_id: i.kind for i in outcome.items}
        assert kinds == {"P1": OutcomeKind.SUCCESS, "P2": OutcomeKind.FATAL}
        assert outcome.kind is OutcomeKind.FATAL
        assert rig.store.get("O1", "P1").status is ReservationStatus.DEBITED

    def test_cancel_releases_only_active_lines(self):
        rig = SagaRig({"P1": 10, "P2": 10})
        rig.engine.handle(_reserve(product_id="P1", quantity=1))
        rig.engine.handle(_reserve(product_id="P2", quantity=2))
        rig.store.transition_to(
            rig.store.get("O1", "P1").id, ReservationStatus.RELEASED, FIXED_NOW
        )
        rig.ledger.release("P1", 1)

        outcome = rig.engine.handle(_cancel())

        assert outcome.kind is OutcomeKind.SUCCESS
        assert rig.available("P1") == 10
        assert rig.available("P2") == 10

    def test_line_reserved_again_after_cancel_is_confirmed_cleanly(self):
        rig = SagaRig({"P1": 10})
        rig.engine.handle(_reserve(quantity=2))
        rig.engine.handle(_cancel())
        rig.engine.handle(_reserve(quantity=3))

        outcome = rig.engine.handle(_confirm())

        assert outcome.kind is OutcomeKind.SUCCESS
        assert not outcome.needs_review
        assert [(i.product_id, i.kind) for i in outcome.items] == [("P1", OutcomeKind.SUCCESS)]
        assert rig.available("P1") == 7
        assert rig.store.get("O1", "P1").status is ReservationStatus.DEBITED


class TestDispatch:

    def test_unknown_event_type_refused(self):
        rig = SagaRig({"P1": 10})
        ctx = SagaContext("e-x", "str", None, structlog.get_logger())
        with pytest.raises(TypeError, match="Unhandled event type"):
            rig.engine.handle("not an event", ctx)
