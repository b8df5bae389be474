import logging
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_progression_hook, get_session
from ..domain.errors import DomainError
from ..domain.repositories import ProgressionHook
from ..infrastructure.progression import award_progression
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyVenueRepository
from ..models import BookingStatus, Venue
from ..schemas import BookingCreate, BookingRead
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import zone
from .errors import audit_failure, db_error_to_http, domain_error_to_http

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _venue_zone(venue: Venue) -> Optional[ZoneInfo]:
    try:
        return zone(venue.timezone)
    except ValueError:
        logger.warning("venue %s has unknown timezone %r, rendering in UTC", venue.id, venue.timezone)
        return None


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    venue_repo = SqlAlchemyVenueRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking, venue = await booking_usecase.create_booking(
                venue_repo,
                booking_repo,
                venue_id=payload.venue_id,
                user_id=user_id,
                sport_name=payload.sport_name,
                starts_at=payload.start_time,
                ends_at=payload.end_time,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="booking.created",
            subject="booking",
            subject_id=booking.id,
            user_id=user_id,
            status_to=booking.status,
            extra={"venue_id": booking.venue_id, "total_cents": booking.total_cents},
        )
    except RuntimeError:
        raise audit_failure()

    return BookingRead.from_db(booking, _venue_zone(venue))


@router.get("", response_model=List[BookingRead])
async def list_my_bookings(
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    upcoming: bool = Query(default=False),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[BookingRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    rows = await booking_usecase.list_user_bookings(
        booking_repo,
        user_id=user_id,
        status=booking_status,
        upcoming=upcoming,
    )
    return [BookingRead.from_db(b) for b in rows]


@router.get("/{booking_id}", response_model=BookingRead)
async def get_my_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        booking = await booking_usecase.get_user_booking(booking_repo, booking_id=booking_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    return BookingRead.from_db(booking)


@router.put("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking, previous = await booking_usecase.cancel_booking(
                booking_repo,
                booking_id=booking_id,
                user_id=user_id,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="booking.cancelled",
            subject="booking",
            subject_id=booking.id,
            user_id=user_id,
            status_from=previous,
            status_to=booking.status,
        )
    except RuntimeError:
        raise audit_failure()

    return BookingRead.from_db(booking)


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    progression: ProgressionHook = Depends(get_progression_hook),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        async with session.begin():
            booking = await booking_usecase.complete_booking(
                booking_repo,
                booking_id=booking_id,
                user_id=user_id,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="booking.completed",
            subject="booking",
            subject_id=booking.id,
            user_id=user_id,
            status_from=BookingStatus.CONFIRMED,
            status_to=booking.status,
        )
    except RuntimeError:
        raise audit_failure()

    await award_progression(progression, user_id=user_id, source="booking_completed", reference_id=booking.id)
    return BookingRead.from_db(booking)
