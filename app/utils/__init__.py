"""Utility helpers for the practice backend."""

from .security import (
    AuthenticationError,
    TokenClaims,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "AuthenticationError",
    "TokenClaims",
    "create_access_token",
    "decode_access_token",
]
