from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChargeResult:
    status: str
    charge_id: str


class PaymentProviderPort(ABC):
    @abstractmethod
    def create_and_confirm_charge(
        self,
        customer_ref: str | None,
        payment_method_ref: str,
        amount_minor_units: int,
        idempotency_key: str,
        description: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult:
        """
        Capture amount_minor_units off-session in a single attempt.
        Raises PaymentDeclinedError when the card is declined and
        PaymentProviderError on timeouts or transport failures.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any connections held by the adapter."""
