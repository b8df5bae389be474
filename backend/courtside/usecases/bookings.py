from datetime import datetime

from ..domain.errors import ForbiddenError, NotFoundError, SlotUnavailableError, StateError, ValidationError
from ..domain.repositories import BookingRepository, VenueRepository
from ..domain.services import price_for, validate_booking_window
from ..models import Booking, BookingStatus, Venue
from ..utils.time import utc_now_naive


async def create_booking(
    venue_repo: VenueRepository,
    booking_repo: BookingRepository,
    *,
    venue_id: int,
    user_id: int,
    sport_name: str,
    starts_at: datetime,
    ends_at: datetime,
    now: datetime | None = None,
) -> tuple[Booking, Venue]:
    interval = validate_booking_window(starts_at, ends_at, now=now or utc_now_naive())

    # Locking the venue row serializes every booking attempt on this venue, so
    # the overlap check below cannot race another insert.
    venue = await venue_repo.get_for_update(venue_id)
    if venue is None:
        raise NotFoundError("venue not found")

    activity = await venue_repo.find_activity(venue_id, sport_name)
    if activity is None:
        raise ValidationError("sport not offered at this venue")

    # Conflicts are venue-wide: one court cannot host two activities at once.
    if await booking_repo.find_overlapping(venue_id, interval.start, interval.end) is not None:
        raise SlotUnavailableError("this slot is no longer available")

    booking = await booking_repo.create(
        venue_id=venue.id,
        user_id=user_id,
        sport_name=activity.sport_name,
        start_time=interval.start,
        end_time=interval.end,
        total_cents=price_for(activity.hourly_rate_cents, interval),
        currency=venue.currency,
        status=BookingStatus.CONFIRMED,
    )
    return booking, venue


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    user_id: int,
) -> tuple[Booking, BookingStatus]:
    booking = await booking_repo.get_for_update(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    if booking.user_id != user_id:
        raise ForbiddenError("not allowed to cancel this booking")
    if booking.status == BookingStatus.CANCELLED:
        raise StateError("booking is already cancelled")

    previous = booking.status
    booking.status = BookingStatus.CANCELLED
    booking.updated_at = utc_now_naive()
    return await booking_repo.save(booking), previous


async def complete_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    user_id: int,
    now: datetime | None = None,
) -> Booking:
    booking = await booking_repo.get_for_update(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    if booking.user_id != user_id:
        raise ForbiddenError("not allowed to complete this booking")
    if booking.status != BookingStatus.CONFIRMED:
        raise StateError(f"cannot complete a {booking.status} booking")
    if (now or utc_now_naive()) < booking.end_time:
        raise StateError("booking has not finished yet")

    booking.status = BookingStatus.COMPLETED
    booking.updated_at = utc_now_naive()
    return await booking_repo.save(booking)


async def list_user_bookings(
    booking_repo: BookingRepository,
    *,
    user_id: int,
    status: BookingStatus | None = None,
    upcoming: bool = False,
    now: datetime | None = None,
) -> list[Booking]:
    starts_after = (now or utc_now_naive()) if upcoming else None
    return await booking_repo.list_by_user(user_id, status=status, starts_after=starts_after)


async def get_user_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    user_id: int,
) -> Booking:
    booking = await booking_repo.get(booking_id)
    if booking is None or booking.user_id != user_id:
        raise NotFoundError("booking not found")
    return booking
