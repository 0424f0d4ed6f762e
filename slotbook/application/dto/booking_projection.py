from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from slotbook.domain.entities.booking import Booking


class BookingProjection(BaseModel):
    """The fields an email action link carries: enough to render a summary and act."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    date: dt.date
    hour: int = Field(ge=0, le=23)
    resource_id: str = Field(min_length=1)
    contact: str = ""

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingProjection":
        return cls(
            id=booking.id,
            date=booking.date,
            hour=booking.hour,
            resource_id=booking.resource_id,
            contact=booking.client_email,
        )

    def matches(self, booking: Booking) -> bool:
        return (
            self.id == booking.id
            and self.date == booking.date
            and self.hour == booking.hour
            and self.resource_id == booking.resource_id
        )
