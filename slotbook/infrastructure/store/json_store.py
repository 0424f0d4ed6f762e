from __future__ import annotations

import json
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from slotbook.application.exceptions import PersistenceError
from slotbook.domain.entities.account import Account, MembershipTier
from slotbook.domain.entities.booking import Booking, BookingStatus, PaymentStatus
from slotbook.domain.entities.ledger import Department, Statement, Transaction
from slotbook.domain.entities.time_slot import TimeSlot
from slotbook.infrastructure.store.memory_store import MemoryDataStore


SCHEMA_VERSION = 1


class JsonDataStore(MemoryDataStore):
    """
    MemoryDataStore that persists every committed unit of work to one JSON
    file. The file is replaced atomically (temp file + rename), so a crash
    leaves either the previous or the new state on disk, never a mix.
    """

    def __init__(self, path: str = "./data/slotbook.json") -> None:
        super().__init__()
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger(__name__)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceError(f"Cannot read store file {self._path}: {e}") from e

        try:
            slots = [self._deserialize_slot(row) for row in data.get("slots", [])]
            bookings = [self._deserialize_booking(row) for row in data.get("bookings", [])]
            accounts = [self._deserialize_account(row) for row in data.get("accounts", [])]
            transactions = [self._deserialize_transaction(row) for row in data.get("transactions", [])]
            statements = [self._deserialize_statement(row) for row in data.get("statements", [])]
        except (AttributeError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise PersistenceError(f"Store file {self._path} is corrupted: {e}") from e

        self._slots = {s.key: s for s in slots}
        self._bookings = {b.id: b for b in bookings}
        self._accounts = {a.id: a for a in accounts}
        self._transactions = {t.id: t for t in transactions}
        self._statements = {s.id: s for s in statements}
        self._logger.info(
            "Store loaded",
            extra={"path": str(self._path), "bookings": len(self._bookings), "accounts": len(self._accounts)},
        )

    def _on_commit(self) -> None:
        data = {
            "version": SCHEMA_VERSION,
            "slots": [self._serialize_slot(s) for s in self._slots.values()],
            "bookings": [self._serialize_booking(b) for b in self._bookings.values()],
            "accounts": [self._serialize_account(a) for a in self._accounts.values()],
            "transactions": [self._serialize_transaction(t) for t in self._transactions.values()],
            "statements": [self._serialize_statement(s) for s in self._statements.values()],
        }
        temp_path = self._path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(self._path)
        except OSError as e:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    self._logger.warning("Could not remove temp file", extra={"path": str(temp_path)})
            raise PersistenceError(f"Cannot write store file {self._path}: {e}") from e

    @staticmethod
    def _serialize_slot(slot: TimeSlot) -> dict[str, Any]:
        return {
            "resource_id": slot.resource_id,
            "date": slot.date.isoformat(),
            "hour": slot.hour,
            "available": slot.available,
            "booked": slot.booked,
            "booking_id": slot.booking_id,
        }

    @staticmethod
    def _deserialize_slot(data: dict[str, Any]) -> TimeSlot:
        return TimeSlot(
            resource_id=data["resource_id"],
            date=date.fromisoformat(data["date"]),
            hour=int(data["hour"]),
            available=bool(data.get("available", True)),
            booked=bool(data.get("booked", False)),
            booking_id=data.get("booking_id"),
        )

    @staticmethod
    def _serialize_booking(booking: Booking) -> dict[str, Any]:
        return {
            "id": booking.id,
            "resource_id": booking.resource_id,
            "date": booking.date.isoformat(),
            "hour": booking.hour,
            "amount": str(booking.amount),
            "created_at": booking.created_at.isoformat(),
            "account_id": booking.account_id,
            "client_name": booking.client_name,
            "client_email": booking.client_email,
            "client_phone": booking.client_phone,
            "duration_minutes": booking.duration_minutes,
            "status": booking.status.value,
            "payment_status": booking.payment_status.value,
            "charge_to_account": booking.charge_to_account,
            "auto_charge_at": _iso(booking.auto_charge_at),
            "auto_charge_cancelled": booking.auto_charge_cancelled,
            "confirmed_at": _iso(booking.confirmed_at),
            "updated_at": _iso(booking.updated_at),
        }

    @staticmethod
    def _deserialize_booking(data: dict[str, Any]) -> Booking:
        return Booking(
            id=data["id"],
            resource_id=data["resource_id"],
            date=date.fromisoformat(data["date"]),
            hour=int(data["hour"]),
            amount=Decimal(data["amount"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            account_id=data.get("account_id"),
            client_name=data.get("client_name", ""),
            client_email=data.get("client_email", ""),
            client_phone=data.get("client_phone", ""),
            duration_minutes=int(data.get("duration_minutes", 60)),
            status=BookingStatus(data.get("status", "pending")),
            payment_status=PaymentStatus(data.get("payment_status", "pending")),
            charge_to_account=bool(data.get("charge_to_account", False)),
            auto_charge_at=_parse_dt(data.get("auto_charge_at")),
            auto_charge_cancelled=bool(data.get("auto_charge_cancelled", False)),
            confirmed_at=_parse_dt(data.get("confirmed_at")),
            updated_at=_parse_dt(data.get("updated_at")),
        )

    @staticmethod
    def _serialize_account(account: Account) -> dict[str, Any]:
        return {
            "id": account.id,
            "tier": account.tier.value,
            "member_number": account.member_number,
            "name": account.name,
            "email": account.email,
            "customer_ref": account.customer_ref,
            "payment_method_ref": account.payment_method_ref,
            "active": account.active,
        }

    @staticmethod
    def _deserialize_account(data: dict[str, Any]) -> Account:
        return Account(
            id=data["id"],
            tier=MembershipTier(data["tier"]),
            member_number=data.get("member_number"),
            name=data.get("name", ""),
            email=data.get("email", ""),
            customer_ref=data.get("customer_ref"),
            payment_method_ref=data.get("payment_method_ref"),
            active=bool(data.get("active", True)),
        )

    @staticmethod
    def _serialize_transaction(transaction: Transaction) -> dict[str, Any]:
        return {
            "id": transaction.id,
            "account_id": transaction.account_id,
            "amount": str(transaction.amount),
            "department": transaction.department.value,
            "created_at": transaction.created_at.isoformat(),
            "description": transaction.description,
            "is_posted": transaction.is_posted,
        }

    @staticmethod
    def _deserialize_transaction(data: dict[str, Any]) -> Transaction:
        return Transaction(
            id=data["id"],
            account_id=data["account_id"],
            amount=Decimal(data["amount"]),
            department=Department(data["department"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            description=data.get("description", ""),
            is_posted=bool(data.get("is_posted", False)),
        )

    @staticmethod
    def _serialize_statement(statement: Statement) -> dict[str, Any]:
        return {
            "id": statement.id,
            "account_id": statement.account_id,
            "billing_period": statement.billing_period.isoformat(),
            "total_amount": str(statement.total_amount),
            "created_at": statement.created_at.isoformat(),
            "is_paid": statement.is_paid,
            "transaction_ids": list(statement.transaction_ids),
        }

    @staticmethod
    def _deserialize_statement(data: dict[str, Any]) -> Statement:
        return Statement(
            id=data["id"],
            account_id=data["account_id"],
            billing_period=date.fromisoformat(data["billing_period"]),
            total_amount=Decimal(data["total_amount"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            is_paid=bool(data.get("is_paid", False)),
            transaction_ids=tuple(data.get("transaction_ids", [])),
        )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
