"""Reservation core error taxonomy

Every error carries a short human-readable ``message`` that the API hands
back to the presentation layer unchanged.
"""

from typing import Iterable, Optional


class ReservationError(Exception):
    """Base class for all reservation core failures"""
    code = "reservation_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReservationError):
    """A reservation or table id did not resolve"""
    code = "not_found"
    status_code = 404

    def __init__(self, kind: str, ids: Iterable[str]):
        self.kind = kind
        self.ids = list(ids)
        if len(self.ids) == 1:
            message = f"{kind.capitalize()} {self.ids[0]} not found"
        else:
            message = f"{kind.capitalize()}s not found: {', '.join(self.ids)}"
        super().__init__(message)


class ValidationError(ReservationError):
    code = "validation_error"
    status_code = 422


class InvalidTransitionError(ValidationError):
    code = "invalid_transition"

    def __init__(self, reservation_id: str, source: str, target: str):
        self.reservation_id = reservation_id
        self.source = source
        self.target = target
        super().__init__(
            f"Reservation {reservation_id} cannot move from {source} to {target}"
        )


class CapacityError(ValidationError):
    code = "capacity_exceeded"

    def __init__(self, table_id: str, capacity: int, party_size: int):
        self.table_id = table_id
        self.capacity = capacity
        self.party_size = party_size
        super().__init__(
            f"Table {table_id} seats {capacity}, party of {party_size} does not fit"
        )


class TableUnavailableError(ValidationError):
    code = "table_unavailable"
    status_code = 409

    def __init__(self, table_id: str, held_by: Optional[str] = None):
        self.table_id = table_id
        self.held_by = held_by
        message = f"Table {table_id} is already held"
        if held_by:
            message += f" by reservation {held_by}"
        super().__init__(message)


class ConcurrencyConflictError(ReservationError):
    """The record changed since the caller last read it"""
    code = "concurrency_conflict"
    status_code = 409

    def __init__(self, kind: str, record_id: str, expected: Optional[int] = None, actual: Optional[int] = None):
        self.kind = kind
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        message = f"{kind.capitalize()} {record_id} was modified by someone else, reload and retry"
        super().__init__(message)


class ExternalServiceError(ReservationError):
    """A notification channel rejected or failed a dispatch"""
    code = "external_service_error"
    status_code = 502
