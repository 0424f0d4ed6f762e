from __future__ import annotations

import logging
from datetime import date

from slotbook.application.exceptions import ConflictError, NotFoundError, ValidationError
from slotbook.application.ports.data_store import DataStorePort, SlotClaimedError
from slotbook.domain.entities.booking import Booking
from slotbook.domain.entities.interval import Interval
from slotbook.domain.entities.time_slot import TimeSlot


def validate_hour(hour: int) -> None:
    if not isinstance(hour, int) or isinstance(hour, bool) or not 0 <= hour <= 23:
        raise ValidationError(f"Hour must be an integer between 0 and 23, got {hour!r}")


class OverlapChecker:
    """The one place interval intersection is decided, for both create and reschedule."""

    def __init__(self, store: DataStorePort) -> None:
        self._store = store

    def find_conflict(
        self,
        resource_id: str,
        interval: Interval,
        exclude_booking_id: str | None = None,
    ) -> Booking | None:
        for existing in self._store.list_active_bookings(resource_id):
            if exclude_booking_id is not None and existing.id == exclude_booking_id:
                continue
            if existing.interval.overlaps(interval):
                return existing
        return None

    def ensure_free(
        self,
        resource_id: str,
        interval: Interval,
        exclude_booking_id: str | None = None,
    ) -> None:
        existing = self.find_conflict(resource_id, interval, exclude_booking_id)
        if existing is not None:
            raise ConflictError(
                f"Requested time overlaps booking {existing.id} on {resource_id}",
                interval=existing.interval,
                booking_id=existing.id,
            )


class SlotRegistry:
    def __init__(self, store: DataStorePort, overlap_checker: OverlapChecker | None = None) -> None:
        self._store = store
        self._overlaps = overlap_checker or OverlapChecker(store)
        self._logger = logging.getLogger(__name__)

    def get(self, resource_id: str, slot_date: date, hour: int) -> TimeSlot:
        slot = self._store.get_slot(resource_id, slot_date, hour)
        if slot is None:
            raise NotFoundError(f"No slot {resource_id} {slot_date} {hour}:00")
        return slot

    def is_available(self, resource_id: str, slot_date: date, hour: int, duration_minutes: int = 60) -> bool:
        validate_hour(hour)
        slot = self._store.get_slot(resource_id, slot_date, hour)
        return slot is not None and slot.is_open and self._fits(slot, duration_minutes)

    def provision(self, resource_id: str, slot_date: date, hour: int, available: bool = True) -> TimeSlot:
        """Open or close a slot. A booked slot cannot be closed."""
        validate_hour(hour)
        if not resource_id:
            raise ValidationError("resource_id is required")
        with self._store.unit_of_work():
            existing = self._store.get_slot(resource_id, slot_date, hour)
            if existing is None:
                slot = TimeSlot(resource_id=resource_id, date=slot_date, hour=hour, available=available)
            else:
                if existing.booked and not available:
                    raise ValidationError(
                        f"Slot {resource_id} {slot_date} {hour}:00 is booked by {existing.booking_id} and cannot be closed"
                    )
                slot = TimeSlot(
                    resource_id=existing.resource_id,
                    date=existing.date,
                    hour=existing.hour,
                    available=available,
                    booked=existing.booked,
                    booking_id=existing.booking_id,
                )
            self._store.save_slot(slot)
        return slot

    def reserve(
        self,
        resource_id: str,
        slot_date: date,
        hour: int,
        booking_id: str,
        duration_minutes: int = 60,
        exclude_booking_id: str | None = None,
    ) -> TimeSlot:
        validate_hour(hour)
        slot = self.get(resource_id, slot_date, hour)
        if not slot.available:
            raise ValidationError(f"Slot {resource_id} {slot_date} {hour}:00 is not open for booking")

        interval = Interval.for_slot(slot_date, hour, duration_minutes)
        self._overlaps.ensure_free(resource_id, interval, exclude_booking_id=exclude_booking_id)

        try:
            claimed = self._store.claim_slot(resource_id, slot_date, hour, booking_id)
        except SlotClaimedError as e:
            # lost a race the overlap scan could not see
            holder = self._store.get_booking(e.slot.booking_id) if e.slot.booking_id else None
            raise ConflictError(
                f"Slot {resource_id} {slot_date} {hour}:00 is already booked",
                interval=holder.interval if holder else Interval.for_slot(slot_date, hour),
                booking_id=e.slot.booking_id,
            ) from e

        self._logger.info(
            "Slot reserved",
            extra={"resource_id": resource_id, "booking_id": booking_id, "slot": f"{slot_date} {hour}:00"},
        )
        return claimed

    def release(self, resource_id: str, slot_date: date, hour: int, booking_id: str) -> bool:
        released = self._store.release_slot(resource_id, slot_date, hour, booking_id)
        if released:
            self._logger.info("Slot released", extra={"resource_id": resource_id, "booking_id": booking_id})
        return released

    def find_alternatives(
        self,
        resource_id: str,
        from_date: date,
        exclude: tuple[date, int] | None = None,
        limit: int = 5,
        duration_minutes: int = 60,
    ) -> list[TimeSlot]:
        """Open slots that could actually be booked, in date/hour order."""
        if limit <= 0:
            return []
        # open slots covered by a longer booking are dropped, so page until enough survive
        fetch = limit + 1
        while True:
            candidates = self._store.list_open_slots(resource_id, from_date, fetch)
            alternatives = [
                slot
                for slot in candidates
                if (exclude is None or (slot.date, slot.hour) != exclude) and self._fits(slot, duration_minutes)
            ]
            if len(alternatives) >= limit or len(candidates) < fetch:
                return alternatives[:limit]
            fetch *= 2

    def _fits(self, slot: TimeSlot, duration_minutes: int) -> bool:
        interval = Interval.for_slot(slot.date, slot.hour, duration_minutes)
        return self._overlaps.find_conflict(slot.resource_id, interval) is None
