"""Signed bearer tokens identifying the user who owns a practice session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from app.config.settings import settings

ACCESS_TOKEN_TYPE = "access"

# Claims every accepted token must carry.
_DECODE_OPTIONS = {"require_sub": True, "require_exp": True, "require_iat": True}


class AuthenticationError(Exception):
    """Raised when a bearer token is missing claims, expired or badly signed."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    expires_at: datetime
    display_name: Optional[str] = None


def _secret() -> str:
    return settings.security.jwt_secret_key.get_secret_value()


def create_access_token(
    user_id: str,
    display_name: str | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign an access token for ``user_id``; lifetime defaults to the configured minutes."""

    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.security.access_token_expires_minutes)
    claims: dict[str, Any] = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "typ": ACCESS_TOKEN_TYPE,
    }
    if display_name:
        claims["name"] = display_name
    return jwt.encode(claims, _secret(), algorithm=settings.security.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature, expiry and token type, then return the caller's claims."""

    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.security.jwt_algorithm],
            options=_DECODE_OPTIONS,
        )
    except JWTError as exc:
        raise AuthenticationError("Invalid authentication token") from exc

    if claims.get("typ") != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("Not an access token")
    subject = claims["sub"]
    if not isinstance(subject, str) or not subject:
        raise AuthenticationError("Token subject must be a non-empty string")

    name = claims.get("name")
    return TokenClaims(
        user_id=subject,
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        display_name=name if isinstance(name, str) else None,
    )


__all__ = [
    "ACCESS_TOKEN_TYPE",
    "AuthenticationError",
    "TokenClaims",
    "create_access_token",
    "decode_access_token",
]
