from __future__ import annotations

from slotbook.domain.entities.interval import Interval


class SlotbookError(Exception):
    """Base class for errors raised by the reservation core."""


class ValidationError(SlotbookError):
    """Raised when input is malformed or violates a business rule."""


class StateTransitionError(ValidationError):
    """Raised when a booking cannot move from its current status."""


class NotFoundError(SlotbookError):
    """Raised when a booking, account, slot or statement does not exist."""


class ConflictError(SlotbookError):
    """Raised when a requested interval intersects an active reservation."""

    def __init__(self, message: str, interval: Interval, booking_id: str | None = None) -> None:
        super().__init__(message)
        self.interval = interval
        self.booking_id = booking_id

    def to_dict(self) -> dict[str, object]:
        return {"booking_id": self.booking_id, **self.interval.to_dict()}


class TokenError(SlotbookError):
    """Raised when an action token cannot be decoded, fails its MAC or has expired."""


class PaymentDeclinedError(SlotbookError):
    """Raised when the payment provider declines a charge. Recoverable in batch runs."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class PaymentProviderError(SlotbookError):
    """Raised when the payment provider fails (timeouts, network errors, bad responses)."""


class PersistenceError(SlotbookError):
    """Raised when the data store cannot read or write."""
