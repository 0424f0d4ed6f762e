"""
Tests for the Stripe and Resend HTTP adapters against a fake transport.
"""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from slotbook.application.exceptions import PaymentDeclinedError, PaymentProviderError
from slotbook.infrastructure.notifications.resend_notifier import ResendNotifier
from slotbook.infrastructure.payments.stripe_provider import StripePaymentProvider


def _stripe(handler) -> StripePaymentProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return StripePaymentProvider(secret_key="sk_test", base_url="https://stripe.test/v1", currency="USD", client=client)


def _charge(provider: StripePaymentProvider):
    return provider.create_and_confirm_charge(
        customer_ref="cus_1",
        payment_method_ref="pm_1",
        amount_minor_units=8000,
        idempotency_key="auto-charge-b-1",
        metadata={"booking_id": "b-1"},
    )


def test_stripe_success_sends_off_session_intent():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "pi_123", "status": "succeeded"})

    result = _charge(_stripe(handler))

    assert result.charge_id == "pi_123"
    assert seen["url"] == "https://stripe.test/v1/payment_intents"
    assert seen["headers"]["Idempotency-Key"] == "auto-charge-b-1"
    assert seen["headers"]["Authorization"] == "Bearer sk_test"
    assert seen["form"]["amount"] == ["8000"]
    assert seen["form"]["currency"] == ["usd"]
    assert seen["form"]["off_session"] == ["true"]
    assert seen["form"]["metadata[booking_id]"] == ["b-1"]


def test_stripe_card_error_is_a_decline():
    def handler(request):
        return httpx.Response(
            402,
            json={"error": {"type": "card_error", "code": "card_declined", "message": "Your card was declined."}},
        )

    with pytest.raises(PaymentDeclinedError) as exc:
        _charge(_stripe(handler))
    assert exc.value.code == "card_declined"


def test_stripe_requires_action_is_a_decline():
    def handler(request):
        return httpx.Response(200, json={"id": "pi_1", "status": "requires_action"})

    with pytest.raises(PaymentDeclinedError):
        _charge(_stripe(handler))


def test_stripe_outage_is_a_provider_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(PaymentProviderError):
        _charge(_stripe(handler))

    with pytest.raises(PaymentProviderError):
        _charge(_stripe(lambda request: httpx.Response(500, text="oops")))


def test_stripe_requires_key():
    with pytest.raises(ValueError):
        StripePaymentProvider(secret_key="", base_url="https://stripe.test/v1")


def test_resend_posts_email_and_reports_failures():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, json={"id": "email_1"})
        return httpx.Response(422, json={"message": "Invalid `to` field"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier(api_key="re_test", sender="Club <club@example.com>", base_url="https://resend.test", client=client)

    ok = notifier.send("ada@example.com", "Hi", "<p>Hi</p>", "Hi")
    bad = notifier.send("not-an-email", "Hi", "<p>Hi</p>", "Hi")

    assert ok.success is True
    assert str(calls[0].url) == "https://resend.test/emails"
    assert calls[0].headers["Authorization"] == "Bearer re_test"
    assert bad.success is False
    assert bad.error == "Invalid `to` field"


def test_resend_network_error_does_not_raise():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier(api_key="re_test", base_url="https://resend.test", client=client)

    result = notifier.send("ada@example.com", "Hi", "<p>Hi</p>", "Hi")
    assert result.success is False


def test_close_releases_only_owned_clients():
    owned = StripePaymentProvider(secret_key="sk_test", base_url="https://stripe.test/v1")
    shared = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))
    borrowed = ResendNotifier(api_key="re_test", base_url="https://resend.test", client=shared)

    owned.close()
    borrowed.close()

    assert owned._client.is_closed
    assert not shared.is_closed
    shared.close()
