import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.repositories import ProgressionHook
from .infrastructure.progression import HttpProgressionHook, LoggingProgressionHook
from .models import User
from .utils.auth import TokenError, decode_access_token

logger = logging.getLogger(__name__)

_BEARER = "bearer"


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    if not authorization:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != _BEARER or not token.strip():
        raise _unauthorized("Bearer token required")

    settings = get_settings()
    try:
        user_id = decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except TokenError as exc:
        raise _unauthorized("invalid or expired token") from exc

    try:
        found = await session.scalar(select(User.id).where(User.id == user_id))
    except ProgrammingError as exc:
        await session.rollback()
        logger.error("user lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user store unavailable") from exc
    # The lookup autobegins a transaction on the request session; close it so
    # handlers can open their own with session.begin().
    await session.rollback()
    if found is None:
        raise _unauthorized("user not found")
    return user_id


def get_progression_hook() -> ProgressionHook:
    settings = get_settings()
    if settings.progression_url:
        return HttpProgressionHook(settings.progression_url, timeout=settings.progression_timeout_seconds)
    return LoggingProgressionHook()
