from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class TimeSlot:
    resource_id: str
    date: date
    hour: int  # 0-23, local business time
    available: bool = True
    booked: bool = False
    booking_id: str | None = None  # holder while booked

    @property
    def key(self) -> tuple[str, date, int]:
        return (self.resource_id, self.date, self.hour)

    @property
    def is_open(self) -> bool:
        return self.available and not self.booked
