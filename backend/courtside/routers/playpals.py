from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyMatchRepository,
    SqlAlchemySwipeRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import CandidateRead, MatchRead, PlaypalProfileRead, SwipeCreate, SwipeRead
from ..usecases import discovery as discovery_usecase
from ..usecases import playpals as playpal_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, db_error_to_http, domain_error_to_http

router = APIRouter(prefix="/playpals", tags=["playpals"])


@router.get("/discover", response_model=List[CandidateRead])
async def discover(
    sport: Optional[str] = Query(default=None),
    max_distance_km: Optional[float] = Query(default=None, gt=0),
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[CandidateRead]:
    try:
        ranked = await discovery_usecase.discover(
            SqlAlchemyUserRepository(session),
            SqlAlchemySwipeRepository(session),
            SqlAlchemyMatchRepository(session),
            user_id=user_id,
            sport=sport,
            max_distance_km=max_distance_km,
            limit=limit or get_settings().discovery_limit,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    return [CandidateRead.from_ranked(r) for r in ranked]


@router.get("/matches", response_model=List[MatchRead])
async def list_matches(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[MatchRead]:
    rows = await playpal_usecase.list_matches(SqlAlchemyMatchRepository(session), user_id=user_id)
    return [MatchRead.from_db(match=match, other=other) for match, other in rows]


@router.post("/{target_id}/swipe", response_model=SwipeRead, status_code=status.HTTP_201_CREATED)
async def swipe(
    payload: SwipeCreate,
    target_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> SwipeRead:
    try:
        async with session.begin():
            outcome = await playpal_usecase.swipe(
                SqlAlchemyUserRepository(session),
                SqlAlchemySwipeRepository(session),
                SqlAlchemyMatchRepository(session),
                swiper_id=user_id,
                swiped_id=target_id,
                direction=payload.direction,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        if not outcome.reactivated:
            emit_audit_log(
                action="swipe.recorded",
                subject="swipe",
                subject_id=outcome.swipe.id,
                user_id=user_id,
                extra={"target_user_id": target_id, "direction": str(payload.direction)},
            )
        if outcome.is_match and outcome.match is not None and (outcome.created or outcome.reactivated):
            emit_audit_log(
                action="match.created" if outcome.created else "match.reactivated",
                subject="match",
                subject_id=outcome.match.id,
                user_id=user_id,
                extra={"user1_id": outcome.match.user1_id, "user2_id": outcome.match.user2_id},
            )
    except RuntimeError:
        raise audit_failure()

    return SwipeRead.from_outcome(
        swipe=outcome.swipe,
        match=outcome.match,
        is_match=outcome.is_match,
        reactivated=outcome.reactivated,
    )


@router.post("/{target_id}/unmatch", status_code=status.HTTP_204_NO_CONTENT)
async def unmatch(
    target_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> None:
    try:
        async with session.begin():
            match = await playpal_usecase.unmatch(
                SqlAlchemyMatchRepository(session),
                user_id=user_id,
                other_id=target_id,
            )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    except DBAPIError as exc:
        raise db_error_to_http(exc)

    try:
        emit_audit_log(
            action="match.ended",
            subject="match",
            subject_id=match.id,
            user_id=user_id,
            extra={"other_user_id": target_id},
        )
    except RuntimeError:
        raise audit_failure()


@router.get("/{target_id}/profile", response_model=PlaypalProfileRead)
async def get_profile(
    target_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> PlaypalProfileRead:
    try:
        other, is_matched = await playpal_usecase.get_profile(
            SqlAlchemyUserRepository(session),
            SqlAlchemyMatchRepository(session),
            user_id=user_id,
            other_id=target_id,
        )
    except DomainError as exc:
        raise domain_error_to_http(exc)
    return PlaypalProfileRead(user_id=other.id, name=other.name, city=other.city, is_matched=is_matched)
