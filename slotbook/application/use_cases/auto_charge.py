from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from slotbook.application.exceptions import (
    NotFoundError,
    PaymentDeclinedError,
    PaymentProviderError,
    PersistenceError,
    StateTransitionError,
    ValidationError,
)
from slotbook.application.ports.data_store import DataStorePort
from slotbook.application.ports.notifier import NotifierPort
from slotbook.application.ports.payment_provider import PaymentProviderPort
from slotbook.application.use_cases.booking_workflow import utc_now
from slotbook.application.utils import notifications
from slotbook.domain.entities.account import Account
from slotbook.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from slotbook.domain.entities.money import to_minor_units


@dataclass(frozen=True)
class ChargeOutcome:
    booking_id: str
    success: bool
    error: str | None = None
    charge_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"booking_id": self.booking_id, "success": self.success}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AutoChargeResult:
    results: list[ChargeOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, object]:
        return {"processed": self.processed, "results": [r.to_dict() for r in self.results]}


@dataclass(frozen=True)
class CancelAutoChargeResult:
    booking: Booking
    already_cancelled: bool = False


def idempotency_key(booking_id: str) -> str:
    return f"auto-charge-{booking_id}"


class AutoChargeScheduler:
    """
    Captures payment for confirmed bookings whose auto_charge_at has passed.

    run_once() is meant for an external at-least-once cron. Overlapping runs
    are safe only because selection excludes paid and cancelled bookings and
    every booking is re-read right before its capture; two runs landing in the
    same instant can still both attempt one booking, and the provider
    idempotency key collapses that into a single charge. A per-booking lease
    would be needed for strict exactly-once.
    """

    def __init__(
        self,
        store: DataStorePort,
        payments: PaymentProviderPort,
        notifier: NotifierPort,
        operator_email: str,
        business_name: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._payments = payments
        self._notifier = notifier
        self._operator_email = operator_email
        self._business_name = business_name
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def select_due(self, now: datetime | None = None) -> list[Booking]:
        now = now or self._clock()
        return [b for b in self._store.list_due_auto_charges(now) if b.is_due_for_auto_charge(now)]

    def run_once(self, now: datetime | None = None) -> AutoChargeResult:
        now = now or self._clock()
        # enumeration failure is the only thing that fails the whole run
        due = self.select_due(now)
        if not due:
            self._logger.info("No auto-charges due")
            return AutoChargeResult()

        results: list[ChargeOutcome] = []
        for booking in due:
            outcome = self._process(booking.id, now)
            if outcome is not None:
                results.append(outcome)

        failures = sum(1 for r in results if not r.success)
        self._logger.info(
            "Auto-charge run finished",
            extra={"processed": len(results), "failed": failures},
        )
        return AutoChargeResult(results=results)

    def cancel_auto_charge(self, booking_id: str) -> CancelAutoChargeResult:
        with self._store.unit_of_work():
            booking = self._store.get_booking(booking_id)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            if booking.payment_status == PaymentStatus.PAID:
                raise ValidationError(f"Booking {booking_id} has already been charged")
            if booking.auto_charge_cancelled:
                return CancelAutoChargeResult(booking=booking, already_cancelled=True)

            cancelled = replace(booking, auto_charge_cancelled=True, updated_at=self._clock())
            self._store.save_booking(cancelled)

        self._logger.info("Auto-charge cancelled", extra={"booking_id": booking_id})
        return CancelAutoChargeResult(booking=cancelled)

    def charge_now(self, booking_id: str) -> ChargeOutcome:
        """Capture a confirmed booking immediately instead of waiting for its charge time."""
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if booking.payment_status == PaymentStatus.PAID:
            raise ValidationError(f"Booking {booking_id} has already been charged")
        if booking.auto_charge_cancelled:
            raise ValidationError(f"Charging is cancelled for booking {booking_id}")
        if booking.status != BookingStatus.CONFIRMED:
            raise StateTransitionError(f"Booking {booking_id} is {booking.status.value} and cannot be charged")

        account = self._store.get_account(booking.account_id) if booking.account_id else None
        if account is None:
            raise ValidationError(f"Booking {booking_id} has no member account to charge")
        if not account.payment_method_ref:
            raise ValidationError(f"No payment method on file for account {account.id}")

        self._logger.info("Manual charge requested", extra={"booking_id": booking_id, "account_id": account.id})
        try:
            return self._charge(booking, account, automatic=False)
        except PersistenceError as e:
            self._logger.error("Manual charge bookkeeping failed", extra={"booking_id": booking_id, "error": str(e)})
            return ChargeOutcome(booking_id=booking_id, success=False, error=f"Persistence error: {e}")

    def _process(self, booking_id: str, now: datetime) -> ChargeOutcome | None:
        try:
            # a cancellation that landed after selection must still win
            booking = self._store.get_booking(booking_id)
            if booking is None or not booking.is_due_for_auto_charge(now):
                self._logger.info("Skipping booking no longer due", extra={"booking_id": booking_id})
                return None

            account = self._store.get_account(booking.account_id) if booking.account_id else None
            if account is None:
                return self._fail(booking, None, "Account not found", mark_failed=False)
            if not account.payment_method_ref:
                return self._fail(booking, account, "No payment method on file", mark_failed=False)

            return self._charge(booking, account)
        except PersistenceError as e:
            self._logger.error("Auto-charge bookkeeping failed", extra={"booking_id": booking_id, "error": str(e)})
            return ChargeOutcome(booking_id=booking_id, success=False, error=f"Persistence error: {e}")
        except Exception as e:
            self._logger.exception("Auto-charge crashed", extra={"booking_id": booking_id})
            return ChargeOutcome(booking_id=booking_id, success=False, error=f"Unexpected error: {e}")

    def _charge(self, booking: Booking, account: Account, automatic: bool = True) -> ChargeOutcome:
        try:
            charge = self._payments.create_and_confirm_charge(
                customer_ref=account.customer_ref,
                payment_method_ref=account.payment_method_ref,
                amount_minor_units=to_minor_units(booking.amount),
                idempotency_key=idempotency_key(booking.id),
                description=f"Booking {booking.resource_id} {booking.date} - {account.label}",
                metadata={"booking_id": booking.id, "account_id": account.id, "auto_charged": str(automatic).lower()},
            )
        except PaymentDeclinedError as e:
            return self._fail(booking, account, f"Card declined: {e}", mark_failed=True)
        except PaymentProviderError as e:
            return self._fail(booking, account, f"Payment provider error: {e}", mark_failed=True)

        self._save_payment_status(booking.id, PaymentStatus.PAID)
        self._logger.info(
            "Charge captured",
            extra={"booking_id": booking.id, "account_id": account.id, "charge_id": charge.charge_id},
        )
        notifications.deliver(
            self._notifier,
            notifications.payment_receipt(booking, account, self._business_name),
        )
        return ChargeOutcome(booking_id=booking.id, success=True, charge_id=charge.charge_id)

    def _fail(self, booking: Booking, account: Account | None, error: str, mark_failed: bool) -> ChargeOutcome:
        self._logger.warning("Auto-charge failed", extra={"booking_id": booking.id, "error": error})
        if mark_failed:
            # failed stays selectable, so the next run retries
            self._save_payment_status(booking.id, PaymentStatus.FAILED)
        notifications.deliver(
            self._notifier,
            notifications.operator_charge_failure(booking, account, error, self._operator_email),
        )
        return ChargeOutcome(booking_id=booking.id, success=False, error=error)

    def _save_payment_status(self, booking_id: str, status: PaymentStatus) -> None:
        with self._store.unit_of_work():
            current = self._store.get_booking(booking_id)
            if current is None:
                raise PersistenceError(f"Booking {booking_id} disappeared during auto-charge")
            self._store.save_booking(replace(current, payment_status=status, updated_at=self._clock()))
