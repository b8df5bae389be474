from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator
from zoneinfo import ZoneInfo

from ..utils.time import local_to_utc_naive
from .intervals import Interval, overlaps_any

DEFAULT_SLOT = timedelta(hours=1)


@dataclass(frozen=True)
class OpenHours:
    open_time: time
    close_time: time


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool


class SlotSequence:
    """Ordered, restartable sequence of fixed-size slots over one opening window.

    Iterating twice yields the same slots; nothing is precomputed beyond the
    busy intervals captured at construction.
    """

    def __init__(self, window: Interval | None, busy: Iterable[Interval], duration: timedelta) -> None:
        if duration <= timedelta(0):
            raise ValueError("slot duration must be positive")
        self.window = window
        self.busy = list(busy)
        self.duration = duration

    @property
    def closed(self) -> bool:
        return self.window is None

    def __iter__(self) -> Iterator[Slot]:
        if self.window is None:
            return
        current = self.window.start
        while current + self.duration <= self.window.end:
            candidate = Interval(current, current + self.duration)
            yield Slot(start=candidate.start, end=candidate.end, available=not overlaps_any(candidate, self.busy))
            current = candidate.end


def opening_window(day: date, hours: OpenHours, tz: ZoneInfo) -> Interval | None:
    """Venue-local opening hours for ``day`` as a UTC-naive interval.

    A close time at or before the open time is read as closing after midnight.
    """
    close_day = day if hours.close_time > hours.open_time else day + timedelta(days=1)
    start = local_to_utc_naive(day, hours.open_time, tz)
    end = local_to_utc_naive(close_day, hours.close_time, tz)
    if start >= end:
        return None
    return Interval(start, end)


def generate_slots(
    day: date,
    hours: OpenHours | None,
    busy: Iterable[Interval],
    *,
    tz: ZoneInfo,
    duration: timedelta = DEFAULT_SLOT,
) -> SlotSequence:
    window = opening_window(day, hours, tz) if hours is not None else None
    return SlotSequence(window, busy, duration)
