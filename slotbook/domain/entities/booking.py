from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from slotbook.domain.entities.interval import Interval


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# bookings in these states hold their slot
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Booking:
    id: str
    resource_id: str
    date: date
    hour: int
    amount: Decimal
    created_at: datetime
    account_id: str | None = None
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    duration_minutes: int = 60
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    charge_to_account: bool = False
    auto_charge_at: datetime | None = None  # UTC
    auto_charge_cancelled: bool = False
    confirmed_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def interval(self) -> Interval:
        return Interval.for_slot(self.date, self.hour, self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_due_for_auto_charge(self, now: datetime) -> bool:
        return (
            self.account_id is not None
            and self.auto_charge_at is not None
            and self.auto_charge_at <= now
            and not self.auto_charge_cancelled
            and self.payment_status != PaymentStatus.PAID
            and self.status == BookingStatus.CONFIRMED
        )
