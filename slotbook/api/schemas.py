from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field

from slotbook.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from slotbook.domain.entities.ledger import Department, Statement, Transaction
from slotbook.domain.entities.time_slot import TimeSlot


class CreateBookingSchema(BaseModel):
    resource_id: str = Field(min_length=1)
    date: dt.date
    hour: int = Field(ge=0, le=23)
    amount: Decimal
    account_id: str | None = None
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    charge_to_account: bool = False


class TokenActionSchema(BaseModel):
    token: str = Field(min_length=1)


class RescheduleSchema(BaseModel):
    date: dt.date
    hour: int = Field(ge=0, le=23)


class BookingSchema(BaseModel):
    id: str
    resource_id: str
    date: dt.date
    hour: int
    duration_minutes: int
    amount: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    account_id: str | None = None
    client_name: str = ""
    client_email: str = ""
    charge_to_account: bool = False
    auto_charge_at: dt.datetime | None = None
    auto_charge_cancelled: bool = False
    created_at: dt.datetime
    confirmed_at: dt.datetime | None = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingSchema":
        return cls(
            id=booking.id,
            resource_id=booking.resource_id,
            date=booking.date,
            hour=booking.hour,
            duration_minutes=booking.duration_minutes,
            amount=booking.amount,
            status=booking.status,
            payment_status=booking.payment_status,
            account_id=booking.account_id,
            client_name=booking.client_name,
            client_email=booking.client_email,
            charge_to_account=booking.charge_to_account,
            auto_charge_at=booking.auto_charge_at,
            auto_charge_cancelled=booking.auto_charge_cancelled,
            created_at=booking.created_at,
            confirmed_at=booking.confirmed_at,
        )


class SlotSchema(BaseModel):
    resource_id: str
    date: dt.date
    hour: int
    available: bool = True
    booked: bool = False

    @classmethod
    def from_entity(cls, slot: TimeSlot) -> "SlotSchema":
        return cls(
            resource_id=slot.resource_id,
            date=slot.date,
            hour=slot.hour,
            available=slot.available,
            booked=slot.booked,
        )


class ProvisionSlotSchema(BaseModel):
    resource_id: str = Field(min_length=1)
    date: dt.date
    hour: int = Field(ge=0, le=23)
    available: bool = True


class ActionResponseSchema(BaseModel):
    booking: BookingSchema
    changed: bool
    alternatives: list[SlotSchema] = Field(default_factory=list)
    emails_sent: dict[str, bool] = Field(default_factory=dict)


class CancelAutoChargeResponseSchema(BaseModel):
    booking: BookingSchema
    already_cancelled: bool


class TransactionRequestSchema(BaseModel):
    account_id: str = Field(min_length=1)
    amount: Decimal
    department: Department = Department.OTHER
    description: str = ""


class TransactionSchema(BaseModel):
    id: str
    account_id: str
    amount: Decimal
    department: Department
    description: str
    is_posted: bool
    created_at: dt.datetime

    @classmethod
    def from_entity(cls, transaction: Transaction) -> "TransactionSchema":
        return cls(
            id=transaction.id,
            account_id=transaction.account_id,
            amount=transaction.amount,
            department=transaction.department,
            description=transaction.description,
            is_posted=transaction.is_posted,
            created_at=transaction.created_at,
        )


class StatementSchema(BaseModel):
    id: str
    account_id: str
    billing_period: dt.date
    total_amount: Decimal
    is_paid: bool
    transaction_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, statement: Statement) -> "StatementSchema":
        return cls(
            id=statement.id,
            account_id=statement.account_id,
            billing_period=statement.billing_period,
            total_amount=statement.total_amount,
            is_paid=statement.is_paid,
            transaction_ids=list(statement.transaction_ids),
        )


class BillingRunSchema(BaseModel):
    billing_date: dt.date | None = None


class ChargeOutcomeSchema(BaseModel):
    booking_id: str
    success: bool
    error: str | None = None


class ChargeNowResponseSchema(BaseModel):
    booking: BookingSchema
    charge_id: str | None = None


class AutoChargeRunSchema(BaseModel):
    processed: int
    results: list[ChargeOutcomeSchema] = Field(default_factory=list)


class BillingResultSchema(BaseModel):
    processed: int
    skipped: int
    errors: list[str] = Field(default_factory=list)
