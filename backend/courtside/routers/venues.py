from datetime import date

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyVenueRepository
from ..schemas import AvailabilityRead, SlotRead, VenueRead
from ..usecases import availability as availability_usecase
from ..utils.time import zone
from .errors import domain_error_to_http

router = APIRouter(prefix="/venues", tags=["venues"], dependencies=[Depends(get_current_user_id)])


@router.get("/{venue_id}", response_model=VenueRead)
async def get_venue(
    venue_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> VenueRead:
    venue_repo = SqlAlchemyVenueRepository(session)
    try:
        venue, schedules, activities = await availability_usecase.get_venue(venue_repo, venue_id=venue_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    return VenueRead.from_db(venue=venue, schedules=schedules, activities=activities)


@router.get("/{venue_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    venue_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date"),
    sport: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
) -> AvailabilityRead:
    venue_repo = SqlAlchemyVenueRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        result = await availability_usecase.list_availability(
            venue_repo,
            booking_repo,
            venue_id=venue_id,
            day=day,
            sport_name=sport,
            slot_minutes=get_settings().slot_minutes,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc)

    tz = zone(result.venue.timezone)
    return AvailabilityRead(
        venue_id=result.venue.id,
        day=day,
        sport_name=sport,
        hourly_rate_cents=result.hourly_rate_cents,
        currency=result.venue.currency,
        timezone=result.venue.timezone,
        slots=[SlotRead.from_slot(slot, tz) for slot in result.slots],
        message=result.message,
    )
