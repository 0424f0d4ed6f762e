from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from slotbook.application.exceptions import NotFoundError, ValidationError
from slotbook.application.ports.data_store import DataStorePort
from slotbook.application.use_cases.booking_workflow import utc_now
from slotbook.domain.entities.account import Account, MembershipTier
from slotbook.domain.entities.ledger import Department, Statement, Transaction
from slotbook.domain.entities.money import sum_money, to_money


# Monthly dues by tier
TIER_DUES: dict[MembershipTier, Decimal] = {
    MembershipTier.FULL_GOLF: Decimal("500.00"),
    MembershipTier.TENNIS_SOCIAL: Decimal("250.00"),
    MembershipTier.JUNIOR: Decimal("150.00"),
    MembershipTier.HONORARY: Decimal("0.00"),
}


def get_monthly_dues(tier: MembershipTier) -> Decimal:
    return TIER_DUES[MembershipTier(tier)]


def billing_period_for(billing_date: date | datetime) -> date:
    """First day of the month containing billing_date."""
    if isinstance(billing_date, datetime):
        billing_date = billing_date.date()
    return billing_date.replace(day=1)


@dataclass
class BillingResult:
    processed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {"processed": self.processed, "skipped": self.skipped, "errors": list(self.errors)}


class BillingAggregator:
    """
    Rolls each active account's unposted transactions plus its tier dues
    into one statement per billing period.
    """

    def __init__(self, store: DataStorePort, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def run_once(self, billing_date: date | datetime | None = None) -> BillingResult:
        period = billing_period_for(billing_date or self._clock())
        result = BillingResult()

        # if accounts cannot be enumerated the whole run fails
        accounts = self._store.list_active_accounts()

        for account in accounts:
            try:
                created = self._bill_account(account, period)
            except Exception as e:
                self._logger.exception(
                    "Billing failed for account",
                    extra={"account_id": account.id, "period": period.isoformat(), "error": str(e)},
                )
                result.errors.append(f"Account {account.label} [{account.id}]: {e}")
                continue
            if created is None:
                result.skipped += 1
            else:
                result.processed += 1

        self._logger.info(
            "Billing run finished",
            extra={
                "period": period.isoformat(),
                "processed": result.processed,
                "skipped": result.skipped,
                "failed": len(result.errors),
            },
        )
        return result

    def record_transaction(
        self,
        account_id: str,
        amount: Decimal | int | float | str,
        department: Department,
        description: str = "",
    ) -> Transaction:
        """Record an unposted charge, e.g. a POS sale, for the next statement."""
        try:
            amount = to_money(amount)
            department = Department(department)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if amount == 0:
            raise ValidationError("amount must not be zero")

        with self._store.unit_of_work():
            if self._store.get_account(account_id) is None:
                raise NotFoundError(f"Account {account_id} not found")
            transaction = Transaction(
                id=str(uuid.uuid4()),
                account_id=account_id,
                amount=amount,
                department=department,
                created_at=self._clock(),
                description=description,
            )
            self._store.add_transaction(transaction)

        self._logger.info(
            "Transaction recorded",
            extra={"account_id": account_id, "transaction_id": transaction.id, "amount": str(amount)},
        )
        return transaction

    def mark_statement_paid(self, statement_id: str) -> Statement:
        with self._store.unit_of_work():
            statement = self._store.get_statement(statement_id)
            if statement is None:
                raise NotFoundError(f"Statement {statement_id} not found")
            if statement.is_paid:
                return statement
            paid = replace(statement, is_paid=True)
            self._store.save_statement(paid)
        self._logger.info("Statement paid", extra={"account_id": paid.account_id, "statement_id": paid.id})
        return paid

    def _bill_account(self, account: Account, period: date) -> Statement | None:
        with self._store.unit_of_work():
            if self._store.find_statement(account.id, period) is not None:
                # billed already this period; a rerun must not duplicate it
                return None

            unposted = self._store.list_unposted_transactions(account.id)
            transaction_total = sum_money(t.amount for t in unposted)
            tier_dues = get_monthly_dues(account.tier)
            if transaction_total <= 0 and tier_dues <= 0:
                return None

            now = self._clock()
            posted_ids = [t.id for t in unposted]
            if tier_dues > 0:
                dues = Transaction(
                    id=str(uuid.uuid4()),
                    account_id=account.id,
                    amount=tier_dues,
                    department=Department.MEMBERSHIP,
                    created_at=now,
                    description=f"Monthly Dues - {account.tier.value} - {period:%Y-%m}",
                    is_posted=True,
                )
                self._store.add_transaction(dues)
                posted_ids.append(dues.id)

            statement = Statement(
                id=str(uuid.uuid4()),
                account_id=account.id,
                billing_period=period,
                total_amount=to_money(transaction_total + tier_dues),
                created_at=now,
                transaction_ids=tuple(posted_ids),
            )
            self._store.add_statement(statement)
            if unposted:
                self._store.mark_transactions_posted([t.id for t in unposted])

        self._logger.info(
            "Statement created",
            extra={"account_id": account.id, "period": period.isoformat(), "total": str(statement.total_amount)},
        )
        return statement
