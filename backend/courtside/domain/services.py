from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, TypeVar

from .errors import CapacityError, DuplicateAdmissionError, StateError, ValidationError
from .intervals import Interval

T = TypeVar("T", int, str)


def validate_booking_window(starts_at: datetime, ends_at: datetime, *, now: datetime) -> Interval:
    if starts_at >= ends_at:
        raise ValidationError("start_time must be before end_time")
    if starts_at < now:
        raise ValidationError("cannot book in the past")
    return Interval(starts_at, ends_at)


def price_for(hourly_rate_cents: int, interval: Interval) -> int:
    """Price in minor units, ``hourly_rate * hours`` rounded half up."""
    seconds = Decimal(int(interval.duration.total_seconds()))
    amount = Decimal(hourly_rate_cents) * seconds / Decimal(3600)
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class AdmissionSnapshot:
    admitting: bool
    capacity: int
    occupancy: int
    already_admitted: bool
    deadline: Optional[datetime] = None


def validate_admission(snapshot: AdmissionSnapshot, *, now: datetime) -> int:
    """
    Pure admission check against a locked snapshot.
    Returns occupancy after admission. Raises domain errors otherwise.
    """
    if not snapshot.admitting:
        raise StateError("not accepting new participants")
    if snapshot.deadline is not None and now > snapshot.deadline:
        raise StateError("registration deadline has passed")
    if snapshot.already_admitted:
        raise DuplicateAdmissionError("already joined")
    if snapshot.occupancy >= snapshot.capacity:
        raise CapacityError("capacity exceeded")
    return snapshot.occupancy + 1


def canonical_pair(a: T, b: T) -> tuple[T, T]:
    """Order two distinct identifiers ascending so (a, b) and (b, a) agree."""
    if a == b:
        raise ValidationError("a pair needs two distinct users")
    return (a, b) if a < b else (b, a)
