from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime

from slotbook.domain.entities.account import Account
from slotbook.domain.entities.booking import Booking
from slotbook.domain.entities.ledger import Statement, Transaction
from slotbook.domain.entities.time_slot import TimeSlot


class SlotClaimedError(Exception):
    """Raised by claim_slot when another booking already holds the slot."""

    def __init__(self, slot: TimeSlot) -> None:
        super().__init__(f"Slot {slot.resource_id} {slot.date} {slot.hour}:00 is held by {slot.booking_id}")
        self.slot = slot


class DataStorePort(ABC):
    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """
        All-or-nothing scope. Writes made inside the block are discarded
        if the block raises. Scopes may nest; only the outermost one commits.
        """
        raise NotImplementedError

    # Time slots

    @abstractmethod
    def get_slot(self, resource_id: str, slot_date: date, hour: int) -> TimeSlot | None:
        raise NotImplementedError

    @abstractmethod
    def save_slot(self, slot: TimeSlot) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_open_slots(self, resource_id: str, from_date: date, limit: int) -> list[TimeSlot]:
        """Open (available, unbooked) slots on or after from_date, ordered by date then hour."""
        raise NotImplementedError

    @abstractmethod
    def claim_slot(self, resource_id: str, slot_date: date, hour: int, booking_id: str) -> TimeSlot:
        """
        Atomically mark the slot booked by booking_id.
        This is the uniqueness guard on (resource_id, date, hour): raises
        SlotClaimedError if a different booking holds it. Re-claiming by the
        same booking is a no-op.
        """
        raise NotImplementedError

    @abstractmethod
    def release_slot(self, resource_id: str, slot_date: date, hour: int, booking_id: str) -> bool:
        """Free the slot if booking_id holds it. Returns True if released."""
        raise NotImplementedError

    # Bookings

    @abstractmethod
    def add_booking(self, booking: Booking) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_booking(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def save_booking(self, booking: Booking) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_active_bookings(self, resource_id: str) -> list[Booking]:
        """Pending and confirmed bookings on a resource."""
        raise NotImplementedError

    @abstractmethod
    def list_due_auto_charges(self, now: datetime) -> list[Booking]:
        raise NotImplementedError

    # Accounts

    @abstractmethod
    def get_account(self, account_id: str) -> Account | None:
        raise NotImplementedError

    @abstractmethod
    def save_account(self, account: Account) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_active_accounts(self) -> list[Account]:
        raise NotImplementedError

    # Ledger

    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Transaction | None:
        raise NotImplementedError

    @abstractmethod
    def list_unposted_transactions(self, account_id: str) -> list[Transaction]:
        raise NotImplementedError

    @abstractmethod
    def mark_transactions_posted(self, transaction_ids: list[str]) -> None:
        """Flip is_posted false -> true. Raises PersistenceError if any is already posted."""
        raise NotImplementedError

    @abstractmethod
    def add_statement(self, statement: Statement) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_statement(self, statement_id: str) -> Statement | None:
        raise NotImplementedError

    @abstractmethod
    def save_statement(self, statement: Statement) -> None:
        raise NotImplementedError

    @abstractmethod
    def find_statement(self, account_id: str, billing_period: date) -> Statement | None:
        raise NotImplementedError

    @abstractmethod
    def list_statements(self, account_id: str) -> list[Statement]:
        raise NotImplementedError
