"""Domain service: Outbound Notifier.

Publishing is best-effort.  The state change that produced an event has
already committed by the time it is published, so a transport failure is
retried here with exponential backoff and, if it persists, logged and
dropped.  It never travels back into the saga step.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable

import structlog

from stocksaga.domain.exceptions import PublishError
from stocksaga.domain.model.events import OutboundEvent

logger = structlog.get_logger(__name__)


class EventPublisher(ABC):
    """A transport that can hand one outbound event to its consumers."""

    @abstractmethod
    def publish(self, event: OutboundEvent) -> None:
        """Send *event*.  Raises PublishError if the transport refuses it."""


class OutboundNotifier(ABC):

    @abstractmethod
    def publish(self, event: OutboundEvent) -> bool:
        """Publish *event*; True once delivered, False if given up on."""


class RetryingNotifier(OutboundNotifier):

    def __init__(
        self,
        publisher: EventPublisher,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._publisher = publisher
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep

    def publish(self, event: OutboundEvent) -> bool:
        event_type = type(event).__name__
        delay = self._base_delay
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._publisher.publish(event)
                return True
            except PublishError as exc:
                if attempt == self._max_attempts:
                    logger.error(
                        "Giving up on outbound event",
                        event_type=event_type,
                        event_id=event.event_id,
                        order_id=event.order_id,
                        attempts=attempt,
                        error=str(exc),
                    )
                    return False
                logger.warning(
                    "Outbound publish failed, retrying",
                    event_type=event_type,
                    event_id=event.event_id,
                    attempt=attempt,
                    retry_in=delay,
                    error=str(exc),
                )
                self._sleep(delay)
                delay = min(delay * 2, self._max_delay)
        return False
