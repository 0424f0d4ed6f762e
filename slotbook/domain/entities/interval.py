from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True)
class Interval:
    """Half-open time range [start, end) on a single resource."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Interval start ({self.start}) must be before end ({self.end})")

    @classmethod
    def for_slot(cls, slot_date: date, hour: int, duration_minutes: int = 60) -> "Interval":
        start = datetime.combine(slot_date, time(hour=hour))
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    def overlaps(self, other: "Interval") -> bool:
        # touching ranges (end == start) do not overlap
        return self.start < other.end and self.end > other.start

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}
