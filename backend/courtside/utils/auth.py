"""Bearer tokens for Courtside players.

Tokens are HS256 JWTs whose ``sub`` is the numeric user id. Issuance lives
with the account service; the API only needs to verify them, and
``create_access_token`` is kept for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

TOKEN_ISSUER = "courtside"
DEFAULT_TTL = timedelta(hours=12)


class TokenError(ValueError):
    pass


def create_access_token(
    *,
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iss": TOKEN_ISSUER,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or DEFAULT_TTL),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> int:
    """Return the player id carried by ``token``.

    Raises ``TokenError`` for a bad signature, an expired token, a foreign
    issuer or a subject that is not a positive integer.
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            issuer=TOKEN_ISSUER,
            options={"require": ["exp", "sub"]},
        )
    except InvalidTokenError as exc:
        raise TokenError(f"invalid token: {exc}") from exc

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenError("token subject is not a user id") from exc
    if user_id < 1:
        raise TokenError("token subject is not a user id")
    return user_id
