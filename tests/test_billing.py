"""
Tests for monthly statement aggregation and house-account transactions.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from slotbook.application.exceptions import NotFoundError, PersistenceError, ValidationError
from slotbook.application.use_cases.billing import BillingAggregator, billing_period_for, get_monthly_dues
from slotbook.domain.entities.account import Account, MembershipTier
from slotbook.domain.entities.ledger import Department
from slotbook.domain.entities.money import sum_money, to_minor_units, to_money
from slotbook.infrastructure.store.memory_store import MemoryDataStore

from conftest import fixed_clock


JULY = date(2024, 7, 1)


def _account(store, account_id: str, tier: MembershipTier, **kwargs) -> Account:
    account = Account(id=account_id, tier=tier, member_number=f"M-{account_id}", name=account_id.title(), **kwargs)
    store.save_account(account)
    return account


class FailingStatementStore(MemoryDataStore):
    """Refuses statements for one account, after its dues were already written."""

    def __init__(self, failing_account_id: str) -> None:
        super().__init__()
        self.failing_account_id = failing_account_id

    def add_statement(self, statement):
        if statement.account_id == self.failing_account_id:
            raise PersistenceError("disk full")
        super().add_statement(statement)


def test_statement_rolls_up_dues_and_unposted(store, aggregator):
    """$250 tier + unposted $40 and $15 gives 305.00 with both transactions posted."""
    _account(store, "tennis", MembershipTier.TENNIS_SOCIAL)
    t1 = aggregator.record_transaction("tennis", Decimal("40"), Department.FOOD_AND_BEVERAGE, "Lunch")
    t2 = aggregator.record_transaction("tennis", "15", Department.PRO_SHOP, "Balls")

    result = aggregator.run_once(JULY)

    assert result.to_dict() == {"processed": 1, "skipped": 0, "errors": []}
    [statement] = store.list_statements("tennis")
    assert statement.total_amount == Decimal("305.00")
    assert statement.billing_period == JULY
    assert store.get_transaction(t1.id).is_posted
    assert store.get_transaction(t2.id).is_posted
    assert store.list_unposted_transactions("tennis") == []

    dues = [store.get_transaction(tid) for tid in statement.transaction_ids if tid not in {t1.id, t2.id}]
    assert [(d.department, d.amount, d.is_posted) for d in dues] == [
        (Department.MEMBERSHIP, Decimal("250.00"), True)
    ]


def test_second_run_for_same_period_processes_nothing(store, aggregator):
    _account(store, "golf", MembershipTier.FULL_GOLF)

    assert aggregator.run_once(JULY).processed == 1
    second = aggregator.run_once(date(2024, 7, 20))

    assert second.processed == 0
    assert second.skipped == 1
    assert len(store.list_statements("golf")) == 1


def test_late_transactions_roll_into_next_period(store, aggregator):
    _account(store, "junior", MembershipTier.JUNIOR)
    aggregator.run_once(JULY)
    aggregator.record_transaction("junior", "12.50", Department.LESSONS)

    assert aggregator.run_once(date(2024, 8, 1)).processed == 1
    totals = [s.total_amount for s in store.list_statements("junior")]
    assert totals == [Decimal("150.00"), Decimal("162.50")]


def test_nothing_owed_is_skipped(store, aggregator):
    _account(store, "honorary", MembershipTier.HONORARY)
    _account(store, "inactive", MembershipTier.FULL_GOLF, active=False)

    result = aggregator.run_once(JULY)

    assert (result.processed, result.skipped) == (0, 1)
    assert store.list_statements("honorary") == []
    assert store.list_statements("inactive") == []


def test_honorary_with_purchases_is_billed(store, aggregator):
    _account(store, "honorary", MembershipTier.HONORARY)
    aggregator.record_transaction("honorary", "9.99", Department.FOOD_AND_BEVERAGE)

    aggregator.run_once(JULY)
    [statement] = store.list_statements("honorary")
    assert statement.total_amount == Decimal("9.99")
    assert len(statement.transaction_ids) == 1


def test_one_failing_account_is_rolled_back_and_reported():
    """A failure leaves that account untouched and the rest of the run continues."""
    store = FailingStatementStore("broken")
    aggregator = BillingAggregator(store=store, clock=fixed_clock)
    _account(store, "broken", MembershipTier.TENNIS_SOCIAL)
    _account(store, "healthy", MembershipTier.JUNIOR)
    pending = aggregator.record_transaction("broken", "40", Department.OTHER)

    result = aggregator.run_once(JULY)

    assert result.processed == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Account M-broken (Broken) [broken]:")
    assert "disk full" in result.errors[0]
    # no dues line and no posting survived the failed account
    assert store.list_unposted_transactions("broken") == [pending]
    assert not any(t.department == Department.MEMBERSHIP for t in store._transactions.values() if t.account_id == "broken")
    assert len(store.list_statements("healthy")) == 1


def test_record_transaction_validation(store, aggregator):
    _account(store, "golf", MembershipTier.FULL_GOLF)

    with pytest.raises(NotFoundError):
        aggregator.record_transaction("nobody", "10", Department.OTHER)
    with pytest.raises(ValidationError):
        aggregator.record_transaction("golf", "0.001", Department.OTHER)
    with pytest.raises(ValidationError):
        aggregator.record_transaction("golf", "ten", Department.OTHER)
    with pytest.raises(ValidationError):
        aggregator.record_transaction("golf", "10", "BAR_TAB")


def test_credits_reduce_the_statement(store, aggregator):
    _account(store, "golf", MembershipTier.FULL_GOLF)
    aggregator.record_transaction("golf", "-25", Department.OTHER, "Refund")

    aggregator.run_once(JULY)
    assert store.list_statements("golf")[0].total_amount == Decimal("475.00")


def test_mark_statement_paid(store, aggregator):
    _account(store, "golf", MembershipTier.FULL_GOLF)
    aggregator.run_once(JULY)
    [statement] = store.list_statements("golf")

    paid = aggregator.mark_statement_paid(statement.id)
    assert paid.is_paid
    assert aggregator.mark_statement_paid(statement.id) == paid
    with pytest.raises(NotFoundError):
        aggregator.mark_statement_paid("missing")


def test_billing_period_and_dues():
    assert billing_period_for(date(2024, 7, 31)) == JULY
    assert billing_period_for(datetime(2024, 7, 15, 23, tzinfo=timezone.utc)) == JULY
    assert get_monthly_dues(MembershipTier.FULL_GOLF) == Decimal("500.00")
    assert get_monthly_dues("JUNIOR") == Decimal("150.00")


def test_money_rounding():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(40.1) == Decimal("40.10")
    assert to_minor_units(Decimal("80")) == 8000
    assert sum_money([Decimal("0.10")] * 3) == Decimal("0.30")
    with pytest.raises(ValueError):
        to_money("NaN")
