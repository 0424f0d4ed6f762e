from __future__ import annotations

import logging
from dataclasses import dataclass

from slotbook.application.exceptions import PaymentDeclinedError, PaymentProviderError
from slotbook.application.ports.payment_provider import ChargeResult, PaymentProviderPort


@dataclass(frozen=True)
class RecordedCharge:
    customer_ref: str | None
    payment_method_ref: str
    amount_minor_units: int
    idempotency_key: str
    charge_id: str


class MockPaymentProvider(PaymentProviderPort):
    """
    In-process provider for dev and tests. Payment methods listed in
    declined_methods are declined, those in failing_methods time out.
    Repeating an idempotency key returns the original charge.
    """

    def __init__(
        self,
        declined_methods: set[str] | None = None,
        failing_methods: set[str] | None = None,
    ) -> None:
        self.declined_methods = set(declined_methods or ())
        self.failing_methods = set(failing_methods or ())
        self.charges: list[RecordedCharge] = []
        self.attempts: list[str] = []
        self._by_key: dict[str, RecordedCharge] = {}
        self._logger = logging.getLogger(__name__)

    def create_and_confirm_charge(
        self,
        customer_ref: str | None,
        payment_method_ref: str,
        amount_minor_units: int,
        idempotency_key: str,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult:
        self.attempts.append(idempotency_key)

        if idempotency_key in self._by_key:
            charge = self._by_key[idempotency_key]
            return ChargeResult(status="succeeded", charge_id=charge.charge_id)
        if payment_method_ref in self.failing_methods:
            raise PaymentProviderError("Payment provider timed out")
        if payment_method_ref in self.declined_methods:
            raise PaymentDeclinedError("Your card was declined.", code="card_declined")

        charge = RecordedCharge(
            customer_ref=customer_ref,
            payment_method_ref=payment_method_ref,
            amount_minor_units=amount_minor_units,
            idempotency_key=idempotency_key,
            charge_id=f"mock_pi_{len(self.charges) + 1}",
        )
        self.charges.append(charge)
        self._by_key[idempotency_key] = charge
        self._logger.info(
            "Mock charge captured",
            extra={"charge_id": charge.charge_id, "amount": amount_minor_units, "idempotency_key": idempotency_key},
        )
        return ChargeResult(status="succeeded", charge_id=charge.charge_id)
