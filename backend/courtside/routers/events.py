from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_progression_hook, get_session
from ..domain.errors import DomainError
from ..domain.repositories import ProgressionHook
from ..infrastructure.progression import award_progression
from ..infrastructure.repositories import SqlAlchemyEventLedger, SqlAlchemyEventRepository
from ..models import EventStatus, EventType
from ..schemas import AdmissionRead, EventCreate, EventDetailRead, EventListRead, EventRead
from ..usecases import events as event_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, db_error_to_http, domain_error_to_http

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=EventListRead)
async def list_events(
    sport: Optional[str] = Query(default=None),
    event_type: Optional[EventType] = Query(default=None),
    event_status: EventStatus = Query(default=EventStatus.OPEN, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    _: int = Depends(get_current_user_id),
) -> EventListRead:
    repo = SqlAlchemyEventRepository(session)
    rows, total = await event_usecase.list_events(
        repo,
        status=event_status,
        sport=sport,
        event_type=event_type,
        limit=limit,
        offset=offset,
    )
    return EventListRead(
        items=[EventRead.from_db(event, count) for event, count in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/my", response_model=List[EventRead])
async def my_events(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[EventRead]:
    repo = SqlAlchemyEventRepository(session)
    return [EventRead.from_db(e) for e in await event_usecase.my_events(repo, user_id=user_id)]


@router.get("/{event_id}", response_model=EventDetailRead)
async def get_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> EventDetailRead:
    repo = SqlAlchemyEventRepository(session)
    try:
        detail = await event_usecase.get_event(repo, event_id=event_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)

    return EventDetailRead.from_db(
        detail.event,
        detail.registered_count,
        description=detail.event.description,
        is_registered=detail.is_registered,
    )


@router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> EventRead:
    repo = SqlAlchemyEventRepository(session)
    try:
        async with session.begin():
            event = await event_usecase.create_event(repo, organizer_id=user_id, **payload.model_dump())
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="event.created",
            subject="event",
            subject_id=event.id,
            user_id=user_id,
            status_to=event.status,
            extra={"max_participants": event.max_participants},
        )
    except RuntimeError:
        raise audit_failure()

    return EventRead.from_db(event, 0)


@router.post("/{event_id}/register", response_model=AdmissionRead)
async def register(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    progression: ProgressionHook = Depends(get_progression_hook),
) -> AdmissionRead:
    ledger = SqlAlchemyEventLedger(session)
    try:
        async with session.begin():
            result = await event_usecase.register(ledger, event_id=event_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="event.registered",
            subject="event",
            subject_id=event_id,
            user_id=user_id,
            extra={"registered_count": result.occupancy, "rejoined": result.rejoined},
        )
    except RuntimeError:
        raise audit_failure()

    await award_progression(progression, user_id=user_id, source="event_joined", reference_id=event_id)
    return AdmissionRead(
        resource_id=result.resource_id,
        user_id=result.user_id,
        occupancy=result.occupancy,
        rejoined=result.rejoined,
    )


@router.post("/{event_id}/unregister", response_model=AdmissionRead)
async def unregister(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> AdmissionRead:
    ledger = SqlAlchemyEventLedger(session)
    try:
        async with session.begin():
            result = await event_usecase.unregister(ledger, event_id=event_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="event.unregistered",
            subject="event",
            subject_id=event_id,
            user_id=user_id,
            extra={"registered_count": result.occupancy},
        )
    except RuntimeError:
        raise audit_failure()

    return AdmissionRead(resource_id=result.resource_id, user_id=result.user_id, occupancy=result.occupancy)


@router.post("/{event_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> None:
    ledger = SqlAlchemyEventLedger(session)
    try:
        async with session.begin():
            target = await event_usecase.cancel_event(ledger, event_id=event_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="event.cancelled",
            subject="event",
            subject_id=event_id,
            user_id=user_id,
            status_from=target.status,
            status_to=EventStatus.CANCELLED,
        )
    except RuntimeError:
        raise audit_failure()
