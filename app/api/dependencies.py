from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends

from app.db import engine as db_engine
from app.repos.analytics_repo import AnalyticsRepo, InMemoryAnalyticsRepo
from app.repos.pg_analytics_repo import PgAnalyticsRepo
from app.services.analytics_service import AnalyticsService

# Used whenever DATABASE_URL is unset (local dev, tests).
memory_repo = InMemoryAnalyticsRepo()


async def get_analytics_repo() -> AsyncGenerator[AnalyticsRepo, None]:
    """Yield the store for this request: Postgres when configured, else in-memory."""
    if db_engine.async_session_factory is None:
        yield memory_repo
        return

    async for session in db_engine.get_async_session():
        yield PgAnalyticsRepo(session)


def get_analytics_service(
    repo: Annotated[AnalyticsRepo, Depends(get_analytics_repo)],
) -> AnalyticsService:
    return AnalyticsService(repo)
