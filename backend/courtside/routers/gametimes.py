from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_progression_hook, get_session
from ..domain.errors import DomainError
from ..domain.repositories import ProgressionHook
from ..infrastructure.progression import award_progression
from ..infrastructure.repositories import SqlAlchemyGametimeLedger, SqlAlchemyGametimeRepository
from ..models import GametimeSkill, GametimeStatus, GametimeType
from ..schemas import (
    AdmissionRead,
    GametimeCreate,
    GametimeDetailRead,
    GametimeListRead,
    GametimeRead,
    MyGametimesRead,
    UserSummary,
)
from ..usecases import gametimes as gametime_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, db_error_to_http, domain_error_to_http

router = APIRouter(prefix="/gametimes", tags=["gametimes"])


@router.get("", response_model=GametimeListRead)
async def list_gametimes(
    sport: Optional[str] = Query(default=None),
    city: Optional[str] = Query(default=None),
    event_type: Optional[GametimeType] = Query(default=None),
    skill_level: Optional[GametimeSkill] = Query(default=None),
    gametime_status: GametimeStatus = Query(default=GametimeStatus.UPCOMING, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    _: int = Depends(get_current_user_id),
) -> GametimeListRead:
    repo = SqlAlchemyGametimeRepository(session)
    items, total = await gametime_usecase.list_gametimes(
        repo,
        status=gametime_status,
        sport=sport,
        city=city,
        event_type=event_type,
        skill_level=skill_level,
        limit=limit,
        offset=offset,
    )
    return GametimeListRead(
        items=[GametimeRead.from_db(g) for g in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/my", response_model=MyGametimesRead)
async def my_gametimes(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> MyGametimesRead:
    repo = SqlAlchemyGametimeRepository(session)
    created, joined = await gametime_usecase.my_gametimes(repo, user_id=user_id)
    return MyGametimesRead(
        created=[GametimeRead.from_db(g) for g in created],
        joined=[GametimeRead.from_db(g) for g in joined],
    )


@router.get("/{gametime_id}", response_model=GametimeDetailRead)
async def get_gametime(
    gametime_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> GametimeDetailRead:
    repo = SqlAlchemyGametimeRepository(session)
    try:
        detail = await gametime_usecase.get_gametime(repo, gametime_id=gametime_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)

    return GametimeDetailRead.from_db(
        detail.gametime,
        description=detail.gametime.description,
        notes=detail.gametime.notes,
        participants=[UserSummary.from_db(u) for u in detail.participants],
        is_joined=detail.is_joined,
        is_creator=detail.is_creator,
    )


@router.post("", response_model=GametimeRead, status_code=status.HTTP_201_CREATED)
async def create_gametime(
    payload: GametimeCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    progression: ProgressionHook = Depends(get_progression_hook),
) -> GametimeRead:
    repo = SqlAlchemyGametimeRepository(session)
    try:
        async with session.begin():
            gametime = await gametime_usecase.create_gametime(repo, creator_id=user_id, **payload.model_dump())
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="gametime.created",
            subject="gametime",
            subject_id=gametime.id,
            user_id=user_id,
            status_to=gametime.status,
            extra={"max_players": gametime.max_players},
        )
    except RuntimeError:
        raise audit_failure()

    await award_progression(progression, user_id=user_id, source="gametime_hosted", reference_id=gametime.id)
    return GametimeRead.from_db(gametime)


@router.post("/{gametime_id}/join", response_model=AdmissionRead)
async def join_gametime(
    gametime_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    progression: ProgressionHook = Depends(get_progression_hook),
) -> AdmissionRead:
    ledger = SqlAlchemyGametimeLedger(session)
    try:
        async with session.begin():
            result = await gametime_usecase.join_gametime(ledger, gametime_id=gametime_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="gametime.joined",
            subject="gametime",
            subject_id=gametime_id,
            user_id=user_id,
            extra={"current_players": result.occupancy, "rejoined": result.rejoined},
        )
    except RuntimeError:
        raise audit_failure()

    await award_progression(progression, user_id=user_id, source="gametime_attended", reference_id=gametime_id)
    return AdmissionRead(
        resource_id=result.resource_id,
        user_id=result.user_id,
        occupancy=result.occupancy,
        rejoined=result.rejoined,
    )


@router.post("/{gametime_id}/leave", response_model=AdmissionRead)
async def leave_gametime(
    gametime_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> AdmissionRead:
    ledger = SqlAlchemyGametimeLedger(session)
    try:
        async with session.begin():
            result = await gametime_usecase.leave_gametime(ledger, gametime_id=gametime_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="gametime.left",
            subject="gametime",
            subject_id=gametime_id,
            user_id=user_id,
            extra={"current_players": result.occupancy},
        )
    except RuntimeError:
        raise audit_failure()

    return AdmissionRead(resource_id=result.resource_id, user_id=result.user_id, occupancy=result.occupancy)


@router.post("/{gametime_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_gametime(
    gametime_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> None:
    ledger = SqlAlchemyGametimeLedger(session)
    try:
        async with session.begin():
            target = await gametime_usecase.cancel_gametime(ledger, gametime_id=gametime_id, user_id=user_id)
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="gametime.cancelled",
            subject="gametime",
            subject_id=gametime_id,
            user_id=user_id,
            status_from=target.status,
            status_to=GametimeStatus.CANCELLED,
        )
    except RuntimeError:
        raise audit_failure()
