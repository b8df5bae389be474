from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..domain.errors import NotFoundError, ValidationError
from ..domain.intervals import Interval
from ..domain.repositories import BookingRepository, VenueRepository
from ..domain.slots import OpenHours, SlotSequence, generate_slots, opening_window
from ..models import Venue, VenueActivity, VenueSchedule
from ..utils.time import day_of_week, zone


@dataclass(frozen=True)
class DayAvailability:
    venue: Venue
    slots: SlotSequence
    hourly_rate_cents: int
    message: Optional[str] = None


async def list_availability(
    venue_repo: VenueRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    day: date,
    sport_name: str,
    slot_minutes: int = 60,
) -> DayAvailability:
    venue = await venue_repo.get(venue_id)
    if venue is None:
        raise NotFoundError("venue not found")
    try:
        tz = zone(venue.timezone)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    activity = await venue_repo.find_activity(venue_id, sport_name)
    rate = activity.hourly_rate_cents if activity is not None else 0
    duration = timedelta(minutes=slot_minutes)

    schedule = await venue_repo.get_schedule(venue_id, day_of_week(day))
    if schedule is None:
        closed = generate_slots(day, None, [], tz=tz, duration=duration)
        return DayAvailability(venue=venue, slots=closed, hourly_rate_cents=rate, message="venue closed on this day")

    hours = OpenHours(open_time=schedule.open_time, close_time=schedule.close_time)
    window = opening_window(day, hours, tz)
    busy: list[Interval] = []
    if window is not None:
        rows = await booking_repo.list_overlapping(venue_id, window.start, window.end)
        busy = [Interval(b.start_time, b.end_time) for b in rows]
    slots = generate_slots(day, hours, busy, tz=tz, duration=duration)
    return DayAvailability(venue=venue, slots=slots, hourly_rate_cents=rate)


async def get_venue(
    venue_repo: VenueRepository,
    *,
    venue_id: int,
) -> tuple[Venue, list[VenueSchedule], list[VenueActivity]]:
    venue = await venue_repo.get(venue_id)
    if venue is None:
        raise NotFoundError("venue not found")
    schedules = await venue_repo.list_schedules(venue_id)
    activities = await venue_repo.list_activities(venue_id)
    return venue, schedules, activities
