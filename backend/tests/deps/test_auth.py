from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, List, Optional, Union

import jwt
import pytest
from courtside.config import get_settings
from courtside.deps import get_current_user_id, get_progression_hook
from courtside.infrastructure.progression import HttpProgressionHook, LoggingProgressionHook
from courtside.utils.auth import TOKEN_ISSUER, create_access_token
from fastapi import HTTPException
from sqlalchemy.exc import ProgrammingError

SECRET = "deps-secret"


class LookupSession:
    """Answers the player lookup and records how the session was left."""

    def __init__(self, found: Union[Optional[int], Exception]) -> None:
        self.found = found
        self.calls: List[str] = []

    async def scalar(self, *args: Any, **kwargs: Any) -> Optional[int]:
        self.calls.append("scalar")
        if isinstance(self.found, Exception):
            raise self.found
        return self.found

    async def rollback(self) -> None:
        self.calls.append("rollback")


@pytest.fixture(autouse=True)
def _settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", SECRET)
    monkeypatch.delenv("PROGRESSION_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


async def _resolve(authorization: Optional[str], session: LookupSession) -> int:
    return await get_current_user_id(authorization=authorization, session=session)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_known_player_resolves_and_lookup_transaction_is_closed() -> None:
    session = LookupSession(found=7)
    token = create_access_token(user_id=7, secret=SECRET)
    assert await _resolve(f"Bearer {token}", session) == 7
    assert session.calls == ["scalar", "rollback"]


@pytest.mark.asyncio
async def test_scheme_is_case_insensitive() -> None:
    session = LookupSession(found=7)
    token = create_access_token(user_id=7, secret=SECRET)
    assert await _resolve(f"bearer {token}", session) == 7


@pytest.mark.asyncio
@pytest.mark.parametrize("authorization", [None, "", "Bearer", "Bearer   ", "Token abc", "Basic dXNlcjpwYXNz"])
async def test_malformed_header_never_reaches_the_store(authorization: Optional[str]) -> None:
    session = LookupSession(found=7)
    with pytest.raises(HTTPException) as excinfo:
        await _resolve(authorization, session)
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}
    assert session.calls == []


def _token(claims: dict[str, Any]) -> str:
    return jwt.encode(claims, SECRET, algorithm="HS256")


_SOON = datetime.now(timezone.utc) + timedelta(minutes=10)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        _token({"sub": "7", "iss": "elsewhere", "exp": _SOON}),
        _token({"sub": "0", "iss": TOKEN_ISSUER, "exp": _SOON}),
        _token({"sub": "seven", "iss": TOKEN_ISSUER, "exp": _SOON}),
        _token({"sub": "7", "iss": TOKEN_ISSUER}),
        create_access_token(user_id=7, secret=SECRET, expires_delta=timedelta(seconds=-1)),
        create_access_token(user_id=7, secret="not-ours"),
    ],
)
async def test_rejected_tokens_are_401(token: str) -> None:
    session = LookupSession(found=7)
    with pytest.raises(HTTPException) as excinfo:
        await _resolve(f"Bearer {token}", session)
    assert excinfo.value.status_code == 401
    assert session.calls == []


@pytest.mark.asyncio
async def test_token_for_deleted_player_is_401() -> None:
    session = LookupSession(found=None)
    token = create_access_token(user_id=99, secret=SECRET)
    with pytest.raises(HTTPException) as excinfo:
        await _resolve(f"Bearer {token}", session)
    assert excinfo.value.status_code == 401
    assert session.calls == ["scalar", "rollback"]


@pytest.mark.asyncio
async def test_missing_users_table_is_500() -> None:
    session = LookupSession(found=ProgrammingError("SELECT", None, Exception("no such table: users")))
    token = create_access_token(user_id=1, secret=SECRET)
    with pytest.raises(HTTPException) as excinfo:
        await _resolve(f"Bearer {token}", session)
    assert excinfo.value.status_code == 500
    assert session.calls == ["scalar", "rollback"]


def test_progression_hook_follows_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    assert isinstance(get_progression_hook(), LoggingProgressionHook)
    monkeypatch.setenv("PROGRESSION_URL", "http://xp.internal/award")
    get_settings.cache_clear()
    assert isinstance(get_progression_hook(), HttpProgressionHook)
