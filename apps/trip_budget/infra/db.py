from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .settings import Settings


class Database:
    def __init__(self, settings: Settings) -> None:
        engine_kwargs: dict = {"pool_pre_ping": True}
        if not settings.is_sqlite:
            engine_kwargs.update(
                pool_size=settings.postgres_pool_size,
                max_overflow=settings.postgres_max_overflow,
                pool_timeout=settings.postgres_pool_timeout,
            )
        self._engine = create_async_engine(settings.database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False, class_=AsyncSession)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session whose work is committed on success and rolled back on error."""
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def dispose(self) -> None:
        await self._engine.dispose()
