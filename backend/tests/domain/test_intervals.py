from datetime import datetime, timedelta

import pytest
from courtside.domain.errors import ValidationError
from courtside.domain.intervals import Interval, overlaps_any


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 5, 6, hour, minute)


def test_rejects_empty_or_inverted_range() -> None:
    with pytest.raises(ValidationError):
        Interval(_at(10), _at(10))
    with pytest.raises(ValidationError):
        Interval(_at(11), _at(10))


def test_touching_ranges_do_not_overlap() -> None:
    first = Interval(_at(9), _at(10))
    second = Interval(_at(10), _at(11))
    assert not first.overlaps(second)
    assert not second.overlaps(first)


def test_partial_overlap_is_symmetric() -> None:
    first = Interval(_at(9), _at(10, 30))
    second = Interval(_at(10), _at(11))
    assert first.overlaps(second)
    assert second.overlaps(first)


def test_contains_is_half_open() -> None:
    interval = Interval(_at(9), _at(10))
    assert interval.contains(_at(9))
    assert interval.contains(_at(9, 59))
    assert not interval.contains(_at(10))


def test_duration_and_hours() -> None:
    interval = Interval(_at(9), _at(10, 30))
    assert interval.duration == timedelta(minutes=90)
    assert interval.hours == 1.5


def test_overlaps_any() -> None:
    busy = [Interval(_at(12), _at(13)), Interval(_at(15), _at(16))]
    assert overlaps_any(Interval(_at(12, 30), _at(13, 30)), busy)
    assert not overlaps_any(Interval(_at(13), _at(15)), busy)
    assert not overlaps_any(Interval(_at(13), _at(15)), [])
