from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, Iterator

import jwt
import pytest
import pytest_asyncio
from courtside.config import get_settings
from courtside.deps import get_session
from courtside.main import app
from courtside.models import User
from courtside.utils.auth import TOKEN_ISSUER, create_access_token
from courtside.utils.time import utc_now_naive
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

SECRET = "courtside-test-secret"


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", SECRET)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(sqlite_sessions: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    async def sqlite_session() -> AsyncIterator[AsyncSession]:
        async with sqlite_sessions() as session:
            yield session

    app.dependency_overrides[get_session] = sqlite_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def players(sqlite_sessions: async_sessionmaker[AsyncSession]) -> Dict[str, int]:
    now = utc_now_naive()
    async with sqlite_sessions() as session:
        async with session.begin():
            rows = {
                name: User(email=f"{name}@courtside.test", name=name, created_at=now, updated_at=now)
                for name in ("host", "guest")
            }
            session.add_all(rows.values())
        return {name: user.id for name, user in rows.items()}


def _bearer(user_id: int) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id=user_id, secret=SECRET)}"}


def _gametime_payload() -> Dict[str, object]:
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=3)
    return {
        "title": "Friday futsal",
        "sport_name": "Futsal",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=1)).isoformat(),
        "max_players": 2,
    }


@pytest.mark.asyncio
async def test_health_sets_request_id(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_authenticated_writes_run_in_their_own_transaction(client: AsyncClient, players: Dict[str, int]) -> None:
    created = await client.post("/gametimes", json=_gametime_payload(), headers=_bearer(players["host"]))
    assert created.status_code == 201, created.text
    gametime_id = created.json()["gametime_id"]
    assert created.json()["current_players"] == 1

    joined = await client.post(f"/gametimes/{gametime_id}/join", headers=_bearer(players["guest"]))
    assert joined.status_code == 200, joined.text
    assert joined.json()["occupancy"] == 2

    again = await client.post(f"/gametimes/{gametime_id}/join", headers=_bearer(players["guest"]))
    assert again.status_code == 409
    assert again.json()["detail"]["kind"] == "conflict"

    detail = await client.get(f"/gametimes/{gametime_id}", headers=_bearer(players["guest"]))
    assert detail.status_code == 200
    assert detail.json()["is_joined"] is True
    assert sorted(p["user_id"] for p in detail.json()["participants"]) == sorted(players.values())


@pytest.mark.asyncio
async def test_swipes_through_the_api_create_one_match(client: AsyncClient, players: Dict[str, int]) -> None:
    host, guest = players["host"], players["guest"]
    first = await client.post(f"/playpals/{guest}/swipe", json={"direction": "right"}, headers=_bearer(host))
    assert first.status_code == 201, first.text
    assert first.json()["is_match"] is False

    second = await client.post(f"/playpals/{host}/swipe", json={"direction": "right"}, headers=_bearer(guest))
    assert second.status_code == 201
    assert second.json()["is_match"] is True

    matches = await client.get("/playpals/matches", headers=_bearer(host))
    assert [m["user"]["user_id"] for m in matches.json()] == [guest]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/bookings", "/gametimes", "/events", "/playpals/matches", "/venues/1"])
async def test_routes_require_bearer_token(client: AsyncClient, path: str) -> None:
    resp = await client.get(path)
    assert resp.status_code == 401
    assert resp.headers.get("www-authenticate", "").lower().startswith("bearer")


def _foreign_issuer_token(user_id: int) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=5)
    return jwt.encode({"sub": str(user_id), "iss": "elsewhere", "exp": exp}, SECRET, algorithm="HS256")


def _unexpiring_token(user_id: int) -> str:
    return jwt.encode({"sub": str(user_id), "iss": TOKEN_ISSUER}, SECRET, algorithm="HS256")


@pytest.mark.asyncio
async def test_gametime_create_rejects_bad_credentials(client: AsyncClient, players: Dict[str, int]) -> None:
    host = players["host"]
    expired = create_access_token(user_id=host, secret=SECRET, expires_delta=timedelta(seconds=-1))
    cases = [
        "Basic aG9zdDpzZWNyZXQ=",
        "Bearer not-a-jwt",
        f"Bearer {expired}",
        f"Bearer {_foreign_issuer_token(host)}",
        f"Bearer {_unexpiring_token(host)}",
        f"Bearer {create_access_token(user_id=host, secret='another-secret')}",
        f"Bearer {create_access_token(user_id=9999, secret=SECRET)}",
    ]
    for authorization in cases:
        resp = await client.post("/gametimes", json=_gametime_payload(), headers={"Authorization": authorization})
        assert resp.status_code == 401, authorization

    listing = await client.get("/gametimes", headers=_bearer(host))
    assert listing.json()["total"] == 0
