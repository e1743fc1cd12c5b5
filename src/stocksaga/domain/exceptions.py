"""Domain-level exceptions.

Every failure the saga can run into is a subclass of DomainException so
the CLI layer can catch them uniformly.  The saga engine itself never lets
these escape: it folds them into an outcome whose class decides whether
the triggering event is acknowledged.
"""


class DomainException(Exception):
    """Base class for all domain errors."""


class ValidationError(DomainException):
    """A malformed event or an invalid value.  Never worth retrying."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class DuplicateReservationError(DomainException):
    """An active reservation already exists for the order-product pair."""

    def __init__(self, order_id: str, product_id: str) -> None:
        super().__init__(
            f"Order '{order_id}' already holds an active reservation "
            f"for product '{product_id}'"
        )
        self.order_id = order_id
        self.product_id = product_id


class InvalidTransitionError(DomainException):
    """A reservation was asked to move to a state it cannot reach."""


class InvariantViolationError(DomainException):
    """Stock or reservation state would become impossible."""


class TransientError(DomainException):
    """Infrastructure hiccup; the work may succeed if redelivered."""


class ConcurrencyConflictError(TransientError):
    """Optimistic concurrency retries were exhausted."""


class StorageUnavailableError(TransientError):
    """The backing store could not be read or written."""


class PublishError(DomainException):
    """The outbound transport refused an event."""
