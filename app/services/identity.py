"""Explicit identity context handed to session coordinators.

The identity subsystem is a black box that, given credentials, yields a
user identifier. Nothing in the pipeline reads identity from ambient global
state; callers initialise a context and pass it in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.utils import AuthenticationError, decode_access_token

logger = logging.getLogger(__name__)


class NotAuthenticatedError(RuntimeError):
    """Raised when an identity is required but the context is empty."""


@dataclass(frozen=True)
class Identity:
    user_id: str
    display_name: Optional[str] = None


class IdentityContext:
    """Holds at most one signed-in identity between ``init`` and ``teardown``."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    @classmethod
    def from_token(cls, token: str) -> "IdentityContext":
        """Decode a bearer token into a context; raises :class:`AuthenticationError`."""

        claims = decode_access_token(token)
        return cls(Identity(user_id=claims.user_id, display_name=claims.display_name))

    def init(self, identity: Identity) -> None:
        if self._identity is not None and self._identity != identity:
            logger.info("Replacing identity %s with %s", self._identity.user_id, identity.user_id)
        self._identity = identity

    def teardown(self) -> None:
        self._identity = None

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def current(self) -> Identity:
        if self._identity is None:
            raise NotAuthenticatedError("No signed-in user")
        return self._identity

    @property
    def user_id(self) -> str:
        return self.current.user_id


__all__ = [
    "AuthenticationError",
    "Identity",
    "IdentityContext",
    "NotAuthenticatedError",
]
