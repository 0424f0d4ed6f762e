from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MembershipTier(str, Enum):
    FULL_GOLF = "FULL_GOLF"
    TENNIS_SOCIAL = "TENNIS_SOCIAL"
    JUNIOR = "JUNIOR"
    HONORARY = "HONORARY"


@dataclass(frozen=True)
class Account:
    id: str
    tier: MembershipTier
    member_number: str | None = None
    name: str = ""
    email: str = ""
    customer_ref: str | None = None  # payment provider customer
    payment_method_ref: str | None = None  # default card on file
    active: bool = True

    @property
    def label(self) -> str:
        if self.member_number and self.name:
            return f"{self.member_number} ({self.name})"
        return self.member_number or self.name or self.id
