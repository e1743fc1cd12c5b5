"""Unit tests for the ReservationStore domain service."""

from datetime import timedelta

import pytest

from stocksaga.domain.exceptions import (
    DuplicateReservationError,
    EntityNotFoundError,
    InvalidTransitionError,
)
from stocksaga.domain.model.reservation import ReservationStatus
from stocksaga.domain.service.reservation_store import ReservationStore
from tests.fakes import FIXED_NOW, FakeReservationRepository


def _setup():
    repo = FakeReservationRepository()
    return ReservationStore(repo), repo


def _create(store, order_id="O1", product_id="P1", quantity=3, at=FIXED_NOW):
    return store.create(
        order_id=order_id,
        product_id=product_id,
        product_name="Widget",
        quantity=quantity,
        correlation_id="corr-1",
        at=at,
    )


class TestCreate:

    def test_create_persists(self):
        store, repo = _setup()
        r = _create(store)
        assert repo.get_by_id(r.id) == r
        assert r.reserved_at == FIXED_NOW

    def test_second_active_for_same_pair_rejected(self):
        store, _ = _setup()
        _create(store)
        with pytest.raises(DuplicateReservationError) as excinfo:
            _create(store)
        assert (excinfo.value.order_id, excinfo.value.product_id) == ("O1", "P1")

    def test_same_order_other_product_allowed(self):
        store, _ = _setup()
        _create(store, product_id="P1")
        _create(store, product_id="P2")
        assert len(store.list_for_order("O1")) == 2

    def test_new_hold_allowed_once_previous_is_terminal(self):
        store, _ = _setup()
        first = _create(store)
        store.transition_to(first.id, ReservationStatus.RELEASED, FIXED_NOW)
        second = _create(store)
        assert store.get("O1", "P1").id == second.id


class TestLookup:

    def test_get_unknown_pair(self):
        store, _ = _setup()
        with pytest.raises(EntityNotFoundError):
            store.get("O1", "P1")

    def test_get_returns_terminal_row_when_no_active(self):
        store, _ = _setup()
        r = _create(store)
        store.transition_to(r.id, ReservationStatus.DEBITED, FIXED_NOW)
        assert store.get("O1", "P1").status is ReservationStatus.DEBITED

    def test_get_by_unknown_id(self):
        store, _ = _setup()
        with pytest.raises(EntityNotFoundError, match="nope"):
            store.get_by_id("nope")

    def test_current_for_order_skips_superseded_rows(self):
        store, _ = _setup()
        first = _create(store, product_id="P1")
        store.transition_to(first.id, ReservationStatus.RELEASED, FIXED_NOW)
        again = _create(store, product_id="P1")
        other = _create(store, product_id="P2")

        assert [r.id for r in store.current_for_order("O1")] == [again.id, other.id]
        assert len(store.list_for_order("O1")) == 3

    def test_list_active_older_than(self):
        store, _ = _setup()
        old = _create(store, order_id="O1", at=FIXED_NOW - timedelta(minutes=30))
        _create(store, order_id="O2", at=FIXED_NOW)
        done = _create(store, order_id="O3", at=FIXED_NOW - timedelta(hours=1))
        store.transition_to(done.id, ReservationStatus.DEBITED, FIXED_NOW)

        stale = store.list_active_older_than(FIXED_NOW - timedelta(minutes=15))
        assert [r.id for r in stale] == [old.id]


class TestTransition:

    def test_transition_stamps_processed_at(self):
        store, _ = _setup()
        r = _create(store)
        later = FIXED_NOW + timedelta(minutes=5)
        moved = store.transition_to(r.id, ReservationStatus.DEBITED, later)
        assert moved.processed_at == later
        assert store.get_by_id(r.id).status is ReservationStatus.DEBITED

    def test_second_transition_rejected(self):
        store, _ = _setup()
        r = _create(store)
        store.transition_to(r.id, ReservationStatus.DEBITED, FIXED_NOW)
        with pytest.raises(InvalidTransitionError):
            store.transition_to(r.id, ReservationStatus.RELEASED, FIXED_NOW)
        assert store.get_by_id(r.id).status is ReservationStatus.DEBITED

    def test_lost_conditional_write_reports_winner(self):
        store, repo = _setup()
        r = _create(store)
        winner = r.transition_to(ReservationStatus.RELEASED, FIXED_NOW)

        original = repo.replace_if_status

        def racing_replace(reservation, expected_status):
            repo._store[r.id] = winner
            return original(reservation, expected_status)

        repo.replace_if_status = racing_replace
        with pytest.raises(InvalidTransitionError, match="became Released"):
            store.transition_to(r.id, ReservationStatus.DEBITED, FIXED_NOW)
