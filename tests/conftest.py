"""
Shared fixtures: in-memory store, mock adapters and a workflow on a frozen clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from slotbook.application.dto.booking_requests import NewBooking
from slotbook.application.use_cases.auto_charge import AutoChargeScheduler
from slotbook.application.use_cases.billing import BillingAggregator
from slotbook.application.use_cases.booking_workflow import BookingWorkflow
from slotbook.application.use_cases.slot_registry import SlotRegistry
from slotbook.application.utils.token_codec import TokenCodec
from slotbook.infrastructure.notifications.mock_notifier import MockNotifier
from slotbook.infrastructure.payments.mock_provider import MockPaymentProvider
from slotbook.infrastructure.store.memory_store import MemoryDataStore


NOW = datetime(2024, 5, 30, 12, 0, tzinfo=timezone.utc)
TZ = ZoneInfo("America/Los_Angeles")
ADMIN = "admin@club.test"
OPERATOR = "ops@club.test"


def fixed_clock() -> datetime:
    return NOW


def open_slots(store: MemoryDataStore, resource_id: str, slot_date: date, hours: list[int]) -> None:
    registry = SlotRegistry(store)
    for hour in hours:
        registry.provision(resource_id, slot_date, hour)


def new_booking(
    resource_id: str = "court-3",
    slot_date: date = date(2024, 6, 1),
    hour: int = 10,
    amount: str = "80.00",
    **kwargs,
) -> NewBooking:
    kwargs.setdefault("client_name", "Ada Lovelace")
    kwargs.setdefault("client_email", "ada@example.com")
    return NewBooking(resource_id=resource_id, date=slot_date, hour=hour, amount=Decimal(amount), **kwargs)


@pytest.fixture
def store() -> MemoryDataStore:
    return MemoryDataStore()


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def payments() -> MockPaymentProvider:
    return MockPaymentProvider()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec("test-secret", max_age=timedelta(days=14))


def make_workflow(store, notifier, codec, **overrides) -> BookingWorkflow:
    params = dict(
        store=store,
        slots=SlotRegistry(store),
        codec=codec,
        notifier=notifier,
        timezone=TZ,
        public_base_url="https://club.test/",
        admin_email=ADMIN,
        business_name="Test Club",
        clock=fixed_clock,
    )
    params.update(overrides)
    return BookingWorkflow(**params)


@pytest.fixture
def workflow(store, notifier, codec) -> BookingWorkflow:
    return make_workflow(store, notifier, codec)


@pytest.fixture
def scheduler(store, payments, notifier) -> AutoChargeScheduler:
    return AutoChargeScheduler(
        store=store,
        payments=payments,
        notifier=notifier,
        operator_email=OPERATOR,
        business_name="Test Club",
        clock=fixed_clock,
    )


@pytest.fixture
def aggregator(store) -> BillingAggregator:
    return BillingAggregator(store=store, clock=fixed_clock)
