"""Error taxonomy raised by the booking engine.

Every error carries the ``error_kind`` string and HTTP status the blueprint
uses to build its ``{"error": ..., "message": ...}`` response, so callers can
tell a slot conflict from a validation problem without parsing messages.
"""
from __future__ import annotations


class BookingError(Exception):
    """Base class for failures surfaced to callers of the orchestrator."""

    error_kind = "booking_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"error": self.error_kind, "message": self.message}


class ValidationError(BookingError):
    """Missing or malformed request fields."""

    error_kind = "invalid_payload"
    status_code = 400


class AuthorizationError(BookingError):
    """The caller's role or ownership does not permit the operation."""

    error_kind = "forbidden"
    status_code = 403


class NotFoundError(BookingError):
    error_kind = "not_found"
    status_code = 404


class SlotConflictError(BookingError):
    """The requested interval was taken by the time we tried to write it."""

    error_kind = "slot_conflict"
    status_code = 409


class IllegalTransitionError(BookingError):
    error_kind = "illegal_transition"
    status_code = 409


class PersistenceError(BookingError):
    """Storage was unavailable or a write failed; nothing was applied."""

    error_kind = "database_error"
    status_code = 500


class InsufficientPointsError(BookingError):
    """Informational only: attached to a ledger result, never raised to block a booking."""

    error_kind = "insufficient_points"

    def __init__(self, balance: int, cost: int) -> None:
        super().__init__(f"Balance of {balance} points is below the {cost} points required")
        self.balance = balance
        self.cost = cost
