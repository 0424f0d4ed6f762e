from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from slotbook.application.exceptions import PersistenceError
from slotbook.application.ports.data_store import DataStorePort, SlotClaimedError
from slotbook.domain.entities.account import Account
from slotbook.domain.entities.booking import ACTIVE_STATUSES, Booking
from slotbook.domain.entities.ledger import Statement, Transaction
from slotbook.domain.entities.time_slot import TimeSlot

SlotKey = tuple[str, date, int]


class MemoryDataStore(DataStorePort):
    """
    Process-local store. A re-entrant lock serializes every operation, and
    unit_of_work() holds it for the whole block and restores a snapshot on error.
    Entities are frozen, so a snapshot is a shallow copy of each table.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._slots: dict[SlotKey, TimeSlot] = {}
        self._bookings: dict[str, Booking] = {}
        self._accounts: dict[str, Account] = {}
        self._transactions: dict[str, Transaction] = {}
        self._statements: dict[str, Statement] = {}

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if outermost:
                    self._restore(snapshot)
                raise
            else:
                if outermost:
                    try:
                        self._on_commit()
                    except Exception as e:
                        self._restore(snapshot)
                        if isinstance(e, PersistenceError):
                            raise
                        raise PersistenceError(f"Commit failed: {e}") from e
            finally:
                self._depth -= 1

    def _on_commit(self) -> None:
        """Hook for durable subclasses; runs after the outermost unit of work succeeds."""

    def _snapshot(self) -> dict[str, dict[Any, Any]]:
        return {
            "slots": dict(self._slots),
            "bookings": dict(self._bookings),
            "accounts": dict(self._accounts),
            "transactions": dict(self._transactions),
            "statements": dict(self._statements),
        }

    def _restore(self, snapshot: dict[str, dict[Any, Any]] | None) -> None:
        if snapshot is None:
            return
        self._slots = snapshot["slots"]
        self._bookings = snapshot["bookings"]
        self._accounts = snapshot["accounts"]
        self._transactions = snapshot["transactions"]
        self._statements = snapshot["statements"]

    # Time slots

    def get_slot(self, resource_id: str, slot_date: date, hour: int) -> TimeSlot | None:
        with self._lock:
            return self._slots.get((resource_id, slot_date, hour))

    def save_slot(self, slot: TimeSlot) -> None:
        with self.unit_of_work():
            self._slots[slot.key] = slot

    def list_open_slots(self, resource_id: str, from_date: date, limit: int) -> list[TimeSlot]:
        with self._lock:
            slots = [
                s for s in self._slots.values()
                if s.resource_id == resource_id and s.date >= from_date and s.is_open
            ]
        slots.sort(key=lambda s: (s.date, s.hour))
        return slots[:limit]

    def claim_slot(self, resource_id: str, slot_date: date, hour: int, booking_id: str) -> TimeSlot:
        with self.unit_of_work():
            slot = self._slots.get((resource_id, slot_date, hour))
            if slot is None:
                raise PersistenceError(f"Slot {resource_id} {slot_date} {hour}:00 does not exist")
            if slot.booked:
                if slot.booking_id == booking_id:
                    return slot
                raise SlotClaimedError(slot)
            claimed = replace(slot, booked=True, booking_id=booking_id)
            self._slots[claimed.key] = claimed
            return claimed

    def release_slot(self, resource_id: str, slot_date: date, hour: int, booking_id: str) -> bool:
        with self.unit_of_work():
            slot = self._slots.get((resource_id, slot_date, hour))
            if slot is None or not slot.booked or slot.booking_id != booking_id:
                return False
            self._slots[slot.key] = replace(slot, booked=False, booking_id=None)
            return True

    # Bookings

    def add_booking(self, booking: Booking) -> None:
        with self.unit_of_work():
            if booking.id in self._bookings:
                raise PersistenceError(f"Booking {booking.id} already exists")
            self._bookings[booking.id] = booking

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._lock:
            return self._bookings.get(booking_id)

    def save_booking(self, booking: Booking) -> None:
        with self.unit_of_work():
            if booking.id not in self._bookings:
                raise PersistenceError(f"Booking {booking.id} does not exist")
            self._bookings[booking.id] = booking

    def list_active_bookings(self, resource_id: str) -> list[Booking]:
        with self._lock:
            return [
                b for b in self._bookings.values()
                if b.resource_id == resource_id and b.status in ACTIVE_STATUSES
            ]

    def list_due_auto_charges(self, now: datetime) -> list[Booking]:
        with self._lock:
            due = [b for b in self._bookings.values() if b.is_due_for_auto_charge(now)]
        due.sort(key=lambda b: (b.auto_charge_at, b.id))
        return due

    # Accounts

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def save_account(self, account: Account) -> None:
        with self.unit_of_work():
            self._accounts[account.id] = account

    def list_active_accounts(self) -> list[Account]:
        with self._lock:
            return sorted((a for a in self._accounts.values() if a.active), key=lambda a: a.id)

    # Ledger

    def add_transaction(self, transaction: Transaction) -> None:
        with self.unit_of_work():
            if transaction.id in self._transactions:
                raise PersistenceError(f"Transaction {transaction.id} already exists")
            self._transactions[transaction.id] = transaction

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        with self._lock:
            return self._transactions.get(transaction_id)

    def list_unposted_transactions(self, account_id: str) -> list[Transaction]:
        with self._lock:
            unposted = [
                t for t in self._transactions.values()
                if t.account_id == account_id and not t.is_posted
            ]
        unposted.sort(key=lambda t: (t.created_at, t.id))
        return unposted

    def mark_transactions_posted(self, transaction_ids: list[str]) -> None:
        with self.unit_of_work():
            for transaction_id in transaction_ids:
                transaction = self._transactions.get(transaction_id)
                if transaction is None:
                    raise PersistenceError(f"Transaction {transaction_id} does not exist")
                if transaction.is_posted:
                    raise PersistenceError(f"Transaction {transaction_id} is already posted")
                self._transactions[transaction_id] = replace(transaction, is_posted=True)

    def add_statement(self, statement: Statement) -> None:
        with self.unit_of_work():
            if self._find_statement(statement.account_id, statement.billing_period) is not None:
                raise PersistenceError(
                    f"Statement for account {statement.account_id} period {statement.billing_period} already exists"
                )
            self._statements[statement.id] = statement

    def get_statement(self, statement_id: str) -> Statement | None:
        with self._lock:
            return self._statements.get(statement_id)

    def save_statement(self, statement: Statement) -> None:
        with self.unit_of_work():
            existing = self._statements.get(statement.id)
            if existing is None:
                raise PersistenceError(f"Statement {statement.id} does not exist")
            if replace(existing, is_paid=statement.is_paid) != statement:
                raise PersistenceError(f"Statement {statement.id} is immutable except is_paid")
            self._statements[statement.id] = statement

    def find_statement(self, account_id: str, billing_period: date) -> Statement | None:
        with self._lock:
            return self._find_statement(account_id, billing_period)

    def list_statements(self, account_id: str) -> list[Statement]:
        with self._lock:
            statements = [s for s in self._statements.values() if s.account_id == account_id]
        statements.sort(key=lambda s: s.billing_period)
        return statements

    def _find_statement(self, account_id: str, billing_period: date) -> Statement | None:
        for statement in self._statements.values():
            if statement.account_id == account_id and statement.billing_period == billing_period:
                return statement
        return None
