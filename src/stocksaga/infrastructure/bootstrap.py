"""Composition root: builds the JSON stores and hands them to the saga services.

Settings decide where the stores live and how hard the ledger and the
notifier retry; the domain services never read the environment.
"""

from __future__ import annotations

from dataclasses import dataclass

from stocksaga.application.consume_event import EventConsumer
from stocksaga.domain.service.dedup_gate import DedupGate
from stocksaga.domain.service.notifier import RetryingNotifier
from stocksaga.domain.service.reservation_store import ReservationStore
from stocksaga.domain.service.saga_engine import ReservationSagaEngine
from stocksaga.domain.service.stock_ledger import StockLedger
from stocksaga.infrastructure.config import Settings
from stocksaga.infrastructure.messaging.jsonl_event_publisher import JsonlEventPublisher
from stocksaga.infrastructure.persistence.json_inbox_repository import JsonInboxRepository
from stocksaga.infrastructure.persistence.json_reservation_repository import (
    JsonReservationRepository,
)
from stocksaga.infrastructure.persistence.json_stock_repository import JsonStockRepository


@dataclass(frozen=True)
class Container:
    settings: Settings
    stock_repo: JsonStockRepository
    reservation_repo: JsonReservationRepository
    inbox_repo: JsonInboxRepository
    publisher: JsonlEventPublisher
    ledger: StockLedger
    store: ReservationStore
    gate: DedupGate
    engine: ReservationSagaEngine
    consumer: EventConsumer


def build(settings: Settings | None = None) -> Container:
    settings = settings or Settings.from_env()
    data_dir = settings.data_dir

    stock_repo = JsonStockRepository(data_dir / "stock.json")
    reservation_repo = JsonReservationRepository(data_dir / "reservations.json")
    inbox_repo = JsonInboxRepository(data_dir / "inbox.json")
    publisher = JsonlEventPublisher(data_dir / "outbox.jsonl")

    ledger = StockLedger(
        stock_repo,
        max_attempts=settings.cas_max_attempts,
        base_delay=settings.cas_base_delay_ms / 1000,
    )
    store = ReservationStore(reservation_repo)
    gate = DedupGate(inbox_repo)
    notifier = RetryingNotifier(
        publisher,
        max_attempts=settings.publish_max_attempts,
        base_delay=settings.publish_base_delay_ms / 1000,
        max_delay=settings.publish_max_delay_ms / 1000,
    )
    engine = ReservationSagaEngine(ledger, store, notifier)
    consumer = EventConsumer(gate, engine)

    return Container(
        settings=settings,
        stock_repo=stock_repo,
        reservation_repo=reservation_repo,
        inbox_repo=inbox_repo,
        publisher=publisher,
        ledger=ledger,
        store=store,
        gate=gate,
        engine=engine,
        consumer=consumer,
    )
