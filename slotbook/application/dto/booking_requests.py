from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from slotbook.domain.entities.booking import Booking
from slotbook.domain.entities.time_slot import TimeSlot


@dataclass(frozen=True)
class NewBooking:
    resource_id: str
    date: date
    hour: int
    amount: Decimal
    account_id: str | None = None
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    charge_to_account: bool = False


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a confirm / decline / cancel. changed=False means the call was a no-op."""

    booking: Booking
    changed: bool
    alternatives: list[TimeSlot] = field(default_factory=list)
    emails_sent: dict[str, bool] = field(default_factory=dict)
