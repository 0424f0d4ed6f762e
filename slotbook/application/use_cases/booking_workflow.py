from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from slotbook.application.dto.booking_projection import BookingProjection
from slotbook.application.dto.booking_requests import ActionResult, NewBooking
from slotbook.application.exceptions import NotFoundError, StateTransitionError, TokenError, ValidationError
from slotbook.application.ports.data_store import DataStorePort
from slotbook.application.ports.notifier import NotifierPort
from slotbook.application.use_cases.slot_registry import SlotRegistry, validate_hour
from slotbook.application.utils import notifications
from slotbook.application.utils.token_codec import TokenCodec
from slotbook.domain.entities.account import Account
from slotbook.domain.entities.booking import Booking, BookingStatus
from slotbook.domain.entities.ledger import Department, Transaction
from slotbook.domain.entities.money import to_money


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingWorkflow:
    """
    PENDING -> CONFIRMED | DECLINED | CANCELLED, all terminal.

    The slot is reserved when the booking is created, so two pending
    requests for one slot cannot coexist. Decline and cancel release it.
    """

    def __init__(
        self,
        store: DataStorePort,
        slots: SlotRegistry,
        codec: TokenCodec,
        notifier: NotifierPort,
        timezone: ZoneInfo,
        public_base_url: str,
        admin_email: str,
        business_name: str,
        slot_duration_minutes: int = 60,
        auto_charge_grace_minutes: int = 60,
        alternatives_limit: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._slots = slots
        self._codec = codec
        self._notifier = notifier
        self._timezone = timezone
        self._public_base_url = public_base_url.rstrip("/")
        self._admin_email = admin_email
        self._business_name = business_name
        self._slot_duration_minutes = slot_duration_minutes
        self._grace = timedelta(minutes=auto_charge_grace_minutes)
        self._alternatives_limit = alternatives_limit
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def get(self, booking_id: str) -> Booking:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    def create(self, request: NewBooking) -> Booking:
        amount = self._validate_new_booking(request)
        if request.account_id:
            self._require_active_account(request.account_id)

        now = self._clock()
        booking = Booking(
            id=str(uuid.uuid4()),
            resource_id=request.resource_id,
            date=request.date,
            hour=request.hour,
            amount=amount,
            created_at=now,
            updated_at=now,
            account_id=request.account_id,
            client_name=request.client_name.strip(),
            client_email=request.client_email.strip(),
            client_phone=request.client_phone.strip(),
            duration_minutes=self._slot_duration_minutes,
            charge_to_account=request.charge_to_account,
        )

        with self._store.unit_of_work():
            self._slots.reserve(
                booking.resource_id,
                booking.date,
                booking.hour,
                booking.id,
                duration_minutes=booking.duration_minutes,
            )
            self._store.add_booking(booking)

        self._logger.info(
            "Booking requested",
            extra={"booking_id": booking.id, "resource_id": booking.resource_id, "account_id": booking.account_id},
        )
        self._notify_admin_of_request(booking)
        return booking

    def confirm(self, token: object) -> ActionResult:
        projection = self._codec.decode(token, now=self._clock())
        account: Account | None = None

        with self._store.unit_of_work():
            booking = self._load_for_token(projection)
            if booking.status == BookingStatus.CONFIRMED:
                # link prefetchers re-trigger the action; do nothing
                self._logger.info("Booking already confirmed", extra={"booking_id": booking.id})
                return ActionResult(booking=booking, changed=False)
            if booking.status != BookingStatus.PENDING:
                raise StateTransitionError(f"Booking {booking.id} is {booking.status.value} and cannot be confirmed")

            if booking.account_id:
                account = self._store.get_account(booking.account_id)

            now = self._clock()
            auto_charge_at = None
            if account is not None and account.payment_method_ref and not booking.charge_to_account:
                auto_charge_at = self.auto_charge_time(booking)

            confirmed = replace(
                booking,
                status=BookingStatus.CONFIRMED,
                confirmed_at=now,
                updated_at=now,
                auto_charge_at=auto_charge_at,
            )
            self._store.save_booking(confirmed)

            if confirmed.charge_to_account and account is not None:
                self._store.add_transaction(
                    Transaction(
                        id=str(uuid.uuid4()),
                        account_id=account.id,
                        amount=confirmed.amount,
                        department=Department.COURT_RENTAL,
                        created_at=now,
                        description=f"Court booking - {confirmed.resource_id} - {confirmed.date} {confirmed.hour}:00",
                    )
                )

        self._logger.info(
            "Booking confirmed",
            extra={
                "booking_id": confirmed.id,
                "auto_charge_at": confirmed.auto_charge_at.isoformat() if confirmed.auto_charge_at else None,
            },
        )
        emails_sent = {
            "client": self._send(notifications.client_confirmation(confirmed, self._business_name)),
            "admin": self._send(notifications.admin_confirmation(confirmed, self._admin_email)),
        }
        return ActionResult(booking=confirmed, changed=True, emails_sent=emails_sent)

    def decline(self, token: object) -> ActionResult:
        projection = self._codec.decode(token, now=self._clock())

        with self._store.unit_of_work():
            booking = self._load_for_token(projection)
            if booking.status == BookingStatus.DECLINED:
                self._logger.info("Booking already declined", extra={"booking_id": booking.id})
                return ActionResult(booking=booking, changed=False)
            if booking.status != BookingStatus.PENDING:
                raise StateTransitionError(f"Booking {booking.id} is {booking.status.value} and cannot be declined")

            declined = replace(booking, status=BookingStatus.DECLINED, updated_at=self._clock())
            self._store.save_booking(declined)
            self._slots.release(declined.resource_id, declined.date, declined.hour, declined.id)

        alternatives = self._slots.find_alternatives(
            declined.resource_id,
            from_date=self._local_today(),
            exclude=(declined.date, declined.hour),
            limit=self._alternatives_limit,
            duration_minutes=self._slot_duration_minutes,
        )
        self._logger.info(
            "Booking declined",
            extra={"booking_id": declined.id, "alternatives": len(alternatives)},
        )
        emails_sent = {
            "client": self._send(notifications.client_declined(declined, alternatives, self._business_name)),
            "admin": self._send(notifications.admin_declined(declined, alternatives, self._admin_email)),
        }
        return ActionResult(booking=declined, changed=True, alternatives=alternatives, emails_sent=emails_sent)

    def cancel(self, booking_id: str) -> ActionResult:
        with self._store.unit_of_work():
            booking = self.get(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                return ActionResult(booking=booking, changed=False)
            if booking.status != BookingStatus.PENDING:
                raise StateTransitionError(f"Booking {booking.id} is {booking.status.value} and cannot be cancelled")

            cancelled = replace(booking, status=BookingStatus.CANCELLED, updated_at=self._clock())
            self._store.save_booking(cancelled)
            self._slots.release(cancelled.resource_id, cancelled.date, cancelled.hour, cancelled.id)

        self._logger.info("Booking cancelled", extra={"booking_id": cancelled.id})
        return ActionResult(booking=cancelled, changed=True)

    def reschedule(self, booking_id: str, new_date: date, new_hour: int) -> Booking:
        validate_hour(new_hour)
        with self._store.unit_of_work():
            booking = self.get(booking_id)
            if not booking.is_active:
                raise StateTransitionError(f"Booking {booking.id} is {booking.status.value} and cannot be moved")
            if (booking.date, booking.hour) == (new_date, new_hour):
                return booking

            self._slots.reserve(
                booking.resource_id,
                new_date,
                new_hour,
                booking.id,
                duration_minutes=booking.duration_minutes,
                exclude_booking_id=booking.id,
            )
            self._slots.release(booking.resource_id, booking.date, booking.hour, booking.id)

            moved = replace(booking, date=new_date, hour=new_hour, updated_at=self._clock())
            if moved.auto_charge_at is not None:
                moved = replace(moved, auto_charge_at=self.auto_charge_time(moved))
            self._store.save_booking(moved)

        self._logger.info(
            "Booking rescheduled",
            extra={"booking_id": moved.id, "slot": f"{moved.date} {moved.hour}:00"},
        )
        return moved

    def action_token(self, booking: Booking) -> str:
        return self._codec.encode(BookingProjection.from_booking(booking), issued_at=self._clock())

    def auto_charge_time(self, booking: Booking) -> datetime:
        local_start = datetime.combine(booking.date, time(hour=booking.hour), tzinfo=self._timezone)
        service_end = local_start + timedelta(minutes=booking.duration_minutes)
        return (service_end + self._grace).astimezone(timezone.utc)

    def _validate_new_booking(self, request: NewBooking) -> Decimal:
        if not request.resource_id or not request.resource_id.strip():
            raise ValidationError("resource_id is required")
        validate_hour(request.hour)
        if not request.client_email and not request.account_id:
            raise ValidationError("client_email or account_id is required")
        if request.charge_to_account and not request.account_id:
            raise ValidationError("charge_to_account requires an account_id")
        try:
            amount = to_money(request.amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")
        return amount

    def _require_active_account(self, account_id: str) -> Account:
        account = self._store.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        if not account.active:
            raise ValidationError(f"Account {account_id} is not active")
        return account

    def _load_for_token(self, projection: BookingProjection) -> Booking:
        booking = self.get(projection.id)
        if not projection.matches(booking):
            # the booking moved since the link was issued
            raise TokenError("Token does not match the current booking")
        return booking

    def _local_today(self) -> date:
        return self._clock().astimezone(self._timezone).date()

    def _notify_admin_of_request(self, booking: Booking) -> bool:
        token = self.action_token(booking)
        confirm_url = f"{self._public_base_url}/confirm-booking?token={token}"
        decline_url = f"{self._public_base_url}/decline-booking?token={token}"
        return self._send(notifications.admin_booking_request(booking, self._admin_email, confirm_url, decline_url))

    def _send(self, notification: notifications.Notification) -> bool:
        return notifications.deliver(self._notifier, notification)
