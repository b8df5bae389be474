from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..domain.errors import NotFoundError, ValidationError
from ..domain.repositories import AdmissionLedger, AdmissionTarget, EventRepository
from ..models import Event, EventStatus, EventType
from ..utils.time import utc_now_naive
from . import admission
from .admission import AdmissionResult

DEFAULT_CAPACITY = 32


@dataclass(frozen=True)
class EventDetail:
    event: Event
    registered_count: int
    is_registered: bool


async def create_event(
    event_repo: EventRepository,
    *,
    organizer_id: int,
    title: str,
    sport_name: str,
    event_type: EventType,
    start_time: datetime,
    end_time: datetime,
    max_participants: Optional[int] = None,
    registration_deadline: Optional[datetime] = None,
    description: Optional[str] = None,
    venue_id: Optional[int] = None,
    city: Optional[str] = None,
    now: datetime | None = None,
) -> Event:
    now = now or utc_now_naive()
    if end_time <= start_time:
        raise ValidationError("end time must be after start time")
    if registration_deadline is not None and registration_deadline > start_time:
        raise ValidationError("registration deadline must not be after the start")
    capacity = max_participants or DEFAULT_CAPACITY
    if capacity < 2:
        raise ValidationError("max_participants must be at least 2")

    return await event_repo.create(
        Event(
            organizer_id=organizer_id,
            title=title,
            sport_name=sport_name,
            event_type=event_type,
            description=description,
            venue_id=venue_id,
            city=city,
            start_time=start_time,
            end_time=end_time,
            max_participants=capacity,
            registration_deadline=registration_deadline,
            status=EventStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
    )


async def register(ledger: AdmissionLedger, *, event_id: int, user_id: int) -> AdmissionResult:
    return await admission.admit(ledger, resource_id=event_id, user_id=user_id)


async def unregister(ledger: AdmissionLedger, *, event_id: int, user_id: int) -> AdmissionResult:
    return await admission.withdraw(ledger, resource_id=event_id, user_id=user_id)


async def cancel_event(ledger: AdmissionLedger, *, event_id: int, user_id: int) -> AdmissionTarget:
    return await admission.cancel_resource(ledger, resource_id=event_id, user_id=user_id)


async def get_event(event_repo: EventRepository, *, event_id: int, user_id: int) -> EventDetail:
    event = await event_repo.get(event_id)
    if event is None:
        raise NotFoundError("event not found")
    return EventDetail(
        event=event,
        registered_count=await event_repo.registered_count(event_id),
        is_registered=await event_repo.is_registered(event_id, user_id),
    )


async def list_events(
    event_repo: EventRepository,
    *,
    status: EventStatus = EventStatus.OPEN,
    sport: str | None = None,
    event_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
    now: datetime | None = None,
) -> tuple[list[tuple[Event, int]], int]:
    return await event_repo.search(
        status=status,
        starts_after=now or utc_now_naive(),
        sport=sport,
        event_type=event_type,
        limit=limit,
        offset=offset,
    )


async def my_events(event_repo: EventRepository, *, user_id: int) -> list[Event]:
    return await event_repo.list_registered_for_user(user_id)
