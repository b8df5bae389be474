from datetime import datetime, timedelta, timezone

import jwt
import pytest
from courtside.utils.auth import TOKEN_ISSUER, TokenError, create_access_token, decode_access_token

SECRET = "test-secret"


def test_token_round_trips_user_id() -> None:
    token = create_access_token(user_id=42, secret=SECRET)
    assert decode_access_token(token, secret=SECRET, algorithms=["HS256"]) == 42


def test_expired_token_is_rejected() -> None:
    token = create_access_token(user_id=42, secret=SECRET, expires_delta=timedelta(seconds=-5))
    with pytest.raises(TokenError):
        decode_access_token(token, secret=SECRET, algorithms=["HS256"])


def test_foreign_issuer_is_rejected() -> None:
    now = datetime.now(timezone.utc)
    token = jwt.encode({"sub": "42", "iss": "elsewhere", "exp": now + timedelta(minutes=5)}, SECRET, algorithm="HS256")
    with pytest.raises(TokenError):
        decode_access_token(token, secret=SECRET, algorithms=["HS256"])


@pytest.mark.parametrize("sub", ["abc", "0", "-3"])
def test_subject_must_be_positive_user_id(sub: str) -> None:
    now = datetime.now(timezone.utc)
    claims = {"sub": sub, "iss": TOKEN_ISSUER, "exp": now + timedelta(minutes=5)}
    token = jwt.encode(claims, SECRET, algorithm="HS256")
    with pytest.raises(TokenError):
        decode_access_token(token, secret=SECRET, algorithms=["HS256"])


def test_missing_expiry_is_rejected() -> None:
    token = jwt.encode({"sub": "42", "iss": TOKEN_ISSUER}, SECRET, algorithm="HS256")
    with pytest.raises(TokenError):
        decode_access_token(token, secret=SECRET, algorithms=["HS256"])
