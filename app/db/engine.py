"""Async SQLAlchemy engine for the portal database.

The CMS owns the schema and all writes.  This service connects with
``default_transaction_read_only`` set, so a stray write fails at the
server instead of silently mutating portal data.

Without DATABASE_URL there is no engine at all: ``engine`` and
``async_session_factory`` are None and requests are served from the
in-memory analytics store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the tables in app/db/tables.py."""


def _create_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_pool_size * 2,
        # Connections idle behind a proxy get cut; check before use.
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": "analytics-service",
                "default_transaction_read_only": "on",
            }
        },
    )


engine: AsyncEngine | None = (
    _create_engine(SETTINGS.database_url) if SETTINGS.database_url else None
)
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine is not None else None
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; closing it rolls back the read transaction."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured — no database session available")
    async with async_session_factory() as session:
        yield session


async def ping_database() -> bool:
    """Round-trip ``SELECT 1``.  False when no database is configured; raises if unreachable."""
    if engine is None:
        return False
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    if engine is None:
        logger.info("No DATABASE_URL configured — serving from the in-memory analytics store")
        yield
        return

    logger.info("Analytics database: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
