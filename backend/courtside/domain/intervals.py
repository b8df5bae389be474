from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import ValidationError


@dataclass(frozen=True)
class Interval:
    """Half-open time range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("start must be earlier than end")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def overlaps(self, other: "Interval") -> bool:
        # Touching ranges (self.end == other.start) share no instant.
        return self.start < other.end and other.start < self.end

    def contains(self, point: datetime) -> bool:
        return self.start <= point < self.end


def overlaps_any(interval: Interval, others: list[Interval]) -> bool:
    return any(interval.overlaps(other) for other in others)
