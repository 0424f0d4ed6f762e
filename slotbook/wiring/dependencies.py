from functools import lru_cache
import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from slotbook.core.config import settings
from slotbook.application.ports.data_store import DataStorePort
from slotbook.application.ports.notifier import NotifierPort
from slotbook.application.ports.payment_provider import PaymentProviderPort
from slotbook.application.use_cases.auto_charge import AutoChargeScheduler
from slotbook.application.use_cases.billing import BillingAggregator
from slotbook.application.use_cases.booking_workflow import BookingWorkflow
from slotbook.application.use_cases.slot_registry import SlotRegistry
from slotbook.application.utils.token_codec import TokenCodec
from slotbook.infrastructure.notifications.mock_notifier import MockNotifier
from slotbook.infrastructure.notifications.resend_notifier import ResendNotifier
from slotbook.infrastructure.payments.mock_provider import MockPaymentProvider
from slotbook.infrastructure.payments.stripe_provider import StripePaymentProvider
from slotbook.infrastructure.store.json_store import JsonDataStore
from slotbook.infrastructure.store.memory_store import MemoryDataStore


DEV_TOKEN_SECRET = "slotbook-dev-only"
PLACEHOLDER_SECRETS = {"change-me", DEV_TOKEN_SECRET}

_data_store: DataStorePort | None = None


def _is_local() -> bool:
    return settings.ENV.lower() in {"dev", "local"}


def get_data_store() -> DataStorePort:
    global _data_store
    if _data_store is None:
        if settings.STORE_PROVIDER.lower() == "memory":
            _data_store = MemoryDataStore()
        else:
            _data_store = JsonDataStore(path=settings.STORE_PATH)
    return _data_store


@lru_cache
def get_payment_provider() -> PaymentProviderPort:
    logger = logging.getLogger(__name__)
    if not settings.STRIPE_SECRET_KEY:
        if _is_local():
            logger.info("Using MockPaymentProvider (key missing, ENV=dev/local)")
            return MockPaymentProvider()
        raise ValueError("STRIPE_SECRET_KEY is required to capture payments.")
    return StripePaymentProvider()


@lru_cache
def get_notifier() -> NotifierPort:
    logger = logging.getLogger(__name__)
    if not settings.EMAIL_ENABLED or not settings.RESEND_API_KEY:
        if _is_local() or not settings.EMAIL_ENABLED:
            logger.info("Using MockNotifier", extra={"reason": "email disabled or key missing"})
            return MockNotifier()
        raise ValueError("RESEND_API_KEY is required to send email.")
    return ResendNotifier()


@lru_cache
def get_token_codec() -> TokenCodec:
    secret = settings.TOKEN_SECRET
    if not secret or secret in PLACEHOLDER_SECRETS:
        if not _is_local():
            raise ValueError("TOKEN_SECRET must be set to a private value outside dev.")
        logging.getLogger(__name__).warning("Using the dev token secret", extra={"reason": "TOKEN_SECRET unset"})
        secret = DEV_TOKEN_SECRET
    max_age = timedelta(days=settings.TOKEN_MAX_AGE_DAYS) if settings.TOKEN_MAX_AGE_DAYS > 0 else None
    return TokenCodec(secret=secret, max_age=max_age)


def get_slot_registry() -> SlotRegistry:
    return SlotRegistry(store=get_data_store())


def get_booking_workflow() -> BookingWorkflow:
    store = get_data_store()
    return BookingWorkflow(
        store=store,
        slots=SlotRegistry(store=store),
        codec=get_token_codec(),
        notifier=get_notifier(),
        timezone=ZoneInfo(settings.BUSINESS_TIMEZONE),
        public_base_url=settings.PUBLIC_BASE_URL,
        admin_email=settings.ADMIN_EMAIL,
        business_name=settings.BUSINESS_NAME,
        slot_duration_minutes=settings.SLOT_DURATION_MINUTES,
        auto_charge_grace_minutes=settings.AUTO_CHARGE_GRACE_MINUTES,
        alternatives_limit=settings.DECLINE_ALTERNATIVES_LIMIT,
    )


def get_auto_charge_scheduler() -> AutoChargeScheduler:
    return AutoChargeScheduler(
        store=get_data_store(),
        payments=get_payment_provider(),
        notifier=get_notifier(),
        operator_email=settings.OPERATOR_EMAIL,
        business_name=settings.BUSINESS_NAME,
    )


def get_billing_aggregator() -> BillingAggregator:
    return BillingAggregator(store=get_data_store())


def close_adapters() -> None:
    """Close the cached HTTP adapters and forget them."""
    for getter in (get_payment_provider, get_notifier):
        if getter.cache_info().currsize:
            getter().close()
        getter.cache_clear()
