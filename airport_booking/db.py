"""Database utilities: engine construction, sessions and the unit-of-work helper."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .errors import Conflict, TransientStoreError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def create_engine(dsn: str) -> AsyncEngine:
    return create_async_engine(dsn, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db(engine: AsyncEngine) -> None:
    """Create database tables if they are missing."""

    from . import models  # noqa: F401  ensure metadata is imported

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def insert_on_conflict(db: AsyncSession, model: type) -> postgresql.Insert | sqlite.Insert:
    """INSERT for the bound dialect, exposing its ON CONFLICT clauses."""

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not available on {dialect}")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as session:
        yield session


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one transaction.

    Commits on success and rolls back on any exception. Unique-constraint
    violations surface as ``Conflict`` and driver-level failures (timeouts,
    deadlocks, dropped connections) as ``TransientStoreError``; every other
    exception propagates unchanged after the rollback.
    """

    try:
        yield db
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Integrity error, transaction rolled back: %s", exc.orig)
        raise Conflict("Conflicting write rejected by the datastore") from exc
    except DBAPIError as exc:
        await db.rollback()
        logger.error("Datastore failure, transaction rolled back: %s", exc.orig)
        raise TransientStoreError("Datastore temporarily unavailable, retry the operation") from exc
    except BaseException:
        await db.rollback()
        raise
