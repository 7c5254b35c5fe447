"""Bearer token signing and verification."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.config.settings import settings
from app.services.identity import IdentityContext
from app.utils import AuthenticationError, create_access_token, decode_access_token


def sign(claims: dict, secret: str | None = None) -> str:
    key = secret or settings.security.jwt_secret_key.get_secret_value()
    return jwt.encode(claims, key, algorithm=settings.security.jwt_algorithm)


def valid_claims(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    claims = {"sub": "user-7", "iat": now, "exp": now + timedelta(minutes=5), "typ": "access"}
    claims.update(overrides)
    return claims


def test_token_round_trips_user_and_name():
    token = create_access_token("user-7", display_name="Ada", expires_delta=timedelta(minutes=5))

    claims = decode_access_token(token)

    assert claims.user_id == "user-7"
    assert claims.display_name == "Ada"
    remaining = claims.expires_at - datetime.now(timezone.utc)
    assert timedelta(minutes=4) < remaining <= timedelta(minutes=5)


def test_identity_context_from_token():
    context = IdentityContext.from_token(create_access_token("user-7"))

    assert context.user_id == "user-7"
    assert context.current.display_name is None


def test_expired_token_is_rejected():
    token = create_access_token("user-7", expires_delta=timedelta(seconds=-5))

    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_token_signed_with_another_key_is_rejected():
    with pytest.raises(AuthenticationError):
        decode_access_token(sign(valid_claims(), secret="not-the-server-secret"))


@pytest.mark.parametrize(
    "claims",
    [
        {key: value for key, value in valid_claims().items() if key != "typ"},
        valid_claims(typ="refresh"),
        {key: value for key, value in valid_claims().items() if key != "sub"},
        {key: value for key, value in valid_claims().items() if key != "exp"},
        valid_claims(sub=""),
    ],
    ids=["no-type", "refresh-type", "no-subject", "no-expiry", "empty-subject"],
)
def test_incomplete_or_foreign_tokens_are_rejected(claims):
    with pytest.raises(AuthenticationError):
        decode_access_token(sign(claims))
