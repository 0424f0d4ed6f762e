from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class Department(str, Enum):
    MEMBERSHIP = "MEMBERSHIP"
    COURT_RENTAL = "COURT_RENTAL"
    LESSONS = "LESSONS"
    FOOD_AND_BEVERAGE = "FOOD_AND_BEVERAGE"
    PRO_SHOP = "PRO_SHOP"
    OTHER = "OTHER"


@dataclass(frozen=True)
class Transaction:
    id: str
    account_id: str
    amount: Decimal
    department: Department
    created_at: datetime
    description: str = ""
    is_posted: bool = False


@dataclass(frozen=True)
class Statement:
    """Billing-period rollup; only is_paid may change after creation."""

    id: str
    account_id: str
    billing_period: date  # first day of the month
    total_amount: Decimal
    created_at: datetime
    is_paid: bool = False
    transaction_ids: tuple[str, ...] = field(default_factory=tuple)
