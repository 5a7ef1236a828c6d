"""Database engine and async session factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from sro_appointments.config import get_settings
from sro_appointments.core.models import Base

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    return get_settings().database_url


def describe_database(url: str) -> str:
    """The URL without credentials, for logs and CLI output."""
    return url.split("@")[-1]


def engine_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local runs) uses a single-connection pool
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}


@lru_cache
def _get_engine() -> AsyncEngine:
    url = get_database_url()
    logger.info(f"Appointments database: {describe_database(url)}")
    return create_async_engine(url, **engine_options(url))


@lru_cache
def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(_get_engine(), expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; a booking or decision commits as a unit."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the appointments schema, including the live-slot unique index."""
    async with _get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Appointments schema created")
