"""
Database Engine and Sessions

One engine factory serves every backend the practice store runs on:
PostgreSQL through asyncpg in production (pool sized from
config/default.yaml) and SQLite through aiosqlite for local runs and tests.

Startup creates the practice tables and seeds the 144-fact catalog, so the
first scheduling request only has to create the learner's own records.

Usage:
    from tables_app.db.base import create_db_engine, create_session_maker, init_db

    engine = create_db_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    async with create_session_maker(engine)() as session:
        ...
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from tables_app.config import settings, yaml_config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for the practice tables."""

    pass


def create_db_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Build an async engine for a SQLAlchemy URL.

    In-memory SQLite gets a single shared connection so every session sees
    the same database. Other SQLite URLs use the driver defaults; server
    databases use the pool settings from the YAML config.
    """
    if url.startswith("sqlite"):
        if ":memory:" in url:
            return create_async_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(url, echo=echo)

    db_config: dict[str, Any] = yaml_config.get("database", {})
    return create_async_engine(
        url,
        pool_size=db_config.get("pool_size", 5),
        max_overflow=db_config.get("max_overflow", 10),
        pool_timeout=db_config.get("pool_timeout", 30),
        echo=echo,
    )


def create_session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; responses are built from them
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


engine = create_db_engine(settings.SQLALCHEMY_DATABASE_URL, echo=settings.DEBUG)
async_session_maker = create_session_maker(engine)


# Register the models on Base.metadata
from tables_app.db import models  # noqa: F401, E402


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    The request's practice writes commit together when the handler returns
    and roll back together when it raises.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables(db_engine: AsyncEngine) -> None:
    """Create any practice table that does not exist yet."""
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(db_engine: Optional[AsyncEngine] = None) -> None:
    """
    Prepare the database on application startup.

    Creates missing tables and seeds the fact catalog. Both steps are
    idempotent, so restarts and multiple workers are safe.

    Args:
        db_engine: Engine to initialize (defaults to the application engine)
    """
    # The service layer imports the models defined against Base
    from tables_app.services.practice import PracticeService, SQLPracticeStore

    db_engine = db_engine or engine
    await create_tables(db_engine)

    async with create_session_maker(db_engine)() as session:
        await PracticeService(SQLPracticeStore(session), settings).ensure_catalog()
        await session.commit()

    logger.info("Database initialized")
