from __future__ import annotations

import logging

import httpx

from slotbook.application.exceptions import PaymentDeclinedError, PaymentProviderError
from slotbook.application.ports.payment_provider import ChargeResult, PaymentProviderPort
from slotbook.core.config import settings


class StripePaymentProvider(PaymentProviderPort):
    """Off-session PaymentIntent create+confirm against the Stripe REST API."""

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        currency: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self._base_url = (base_url or settings.STRIPE_BASE_URL).rstrip("/")
        self._currency = (currency or settings.CURRENCY).lower()
        if not self._secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required for Stripe payments")

        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout or settings.PAYMENT_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def create_and_confirm_charge(
        self,
        customer_ref: str | None,
        payment_method_ref: str,
        amount_minor_units: int,
        idempotency_key: str,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult:
        if amount_minor_units <= 0:
            raise PaymentProviderError(f"Refusing to charge non-positive amount {amount_minor_units}")

        form: dict[str, str] = {
            "amount": str(amount_minor_units),
            "currency": self._currency,
            "payment_method": payment_method_ref,
            "off_session": "true",
            "confirm": "true",
        }
        if customer_ref:
            form["customer"] = customer_ref
        if description:
            form["description"] = description
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = value

        headers = {
            "Authorization": f"Bearer {self._secret_key}",
            "Idempotency-Key": idempotency_key,
        }

        try:
            resp = self._client.post(f"{self._base_url}/payment_intents", data=form, headers=headers)
        except httpx.TimeoutException as e:
            self._logger.error("Stripe request timed out", extra={"idempotency_key": idempotency_key})
            raise PaymentProviderError("Payment provider timed out") from e
        except httpx.HTTPError as e:
            self._logger.error("Stripe request failed", extra={"idempotency_key": idempotency_key, "error": str(e)})
            raise PaymentProviderError(f"Payment provider unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.status_code >= 400:
            error = body.get("error") or {}
            error_type = error.get("type")
            code = error.get("decline_code") or error.get("code")
            message = error.get("message") or resp.text
            self._logger.warning(
                "Stripe charge rejected",
                extra={"status": resp.status_code, "error_type": error_type, "error_code": code},
            )
            if error_type == "card_error" or resp.status_code == 402:
                raise PaymentDeclinedError(message, code=code)
            raise PaymentProviderError(f"Stripe error {resp.status_code}: {message}")

        status = body.get("status")
        charge_id = body.get("id")
        if not charge_id:
            raise PaymentProviderError("No PaymentIntent id returned from Stripe")
        if status != "succeeded":
            # e.g. requires_action: off-session capture cannot complete it
            raise PaymentDeclinedError(f"Payment not completed (status={status})", code=status)

        self._logger.info("Stripe charge succeeded", extra={"charge_id": charge_id})
        return ChargeResult(status=status, charge_id=str(charge_id))
