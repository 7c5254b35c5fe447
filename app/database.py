"""Lazily created async engine and transactional scopes for the session store.

Nothing connects at import time: the engine is built on first use, so the
in-memory document store and the tests never need a reachable PostgreSQL.
"""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config.settings import settings
from app.models import Base
from app.services.document_store import DocumentStoreError

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def practice_schema() -> str | None:
    """Configured schema for the practice tables, or ``None`` for ``public``."""

    raw = (settings.database.search_schema or "").strip()
    if not raw:
        return None
    if not _IDENTIFIER.fullmatch(raw):
        logger.warning("Ignoring invalid schema name %r; using the default search_path", raw)
        return None
    return raw


def _bind_tables(schema: str | None) -> None:
    if not schema:
        return
    Base.metadata.schema = schema
    for table in Base.metadata.tables.values():
        if table.schema is None:
            table.schema = schema


def get_engine() -> AsyncEngine:
    """Build the engine on first use; serverless or debug runs skip pooling."""

    global _engine
    if _engine is None:
        _bind_tables(practice_schema())
        options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
        if settings.database.serverless or settings.debug:
            options["poolclass"] = NullPool
        _engine = create_async_engine(settings.database.url, **options)
        logger.info("Database engine created host=%s", settings.database.host)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def _use_schema(target: Any) -> None:
    schema = practice_schema()
    if schema:
        await target.execute(text(f'SET search_path TO "{schema}", public'))


@asynccontextmanager
async def session_scope(operation: str = "access the database") -> AsyncIterator[AsyncSession]:
    """Yield a session for one unit of work.

    Driver and connection failures roll back and surface as
    :class:`DocumentStoreError` reading ``"Failed to <operation>"``; a
    ``DocumentStoreError`` raised inside the block passes through unchanged.
    """

    async with get_session_factory()() as session:
        try:
            await _use_schema(session)
            yield session
        except DocumentStoreError:
            await session.rollback()
            raise
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Database operation failed (%s): %s", operation, exc)
            await session.rollback()
            raise DocumentStoreError(f"Failed to {operation}") from exc


async def init_models() -> None:
    """Create the schema (when configured) and any missing practice tables."""

    schema = practice_schema()
    async with get_engine().begin() as conn:
        if schema:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
        await _use_schema(conn)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Practice tables ready in schema %s", schema or "public")


async def dispose_engine() -> None:
    """Close pooled connections; a no-op when the engine was never built."""

    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()


__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "init_models",
    "practice_schema",
    "session_scope",
]
