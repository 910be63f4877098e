from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from apps.trip_budget.db import Base
from apps.trip_budget.infra.db import Database
from apps.trip_budget.infra.settings import Settings
from apps.trip_budget.services.credits import CreditService

TEST_JWT_SECRET = "test-supabase-jwt-secret-with-enough-bytes"


class FakeRedis:
    """Just the commands the rate limiter uses, kept in a dict."""

    def __init__(self) -> None:
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.values:
            return False
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        if key not in self.values:
            return -2
        return self.ttls.get(key, -1)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "SUPABASE_JWT_SECRET": TEST_JWT_SECRET,
        "MESSAGE_COUNTER_INITIAL_COUNT": 25,
        "MESSAGE_COUNTER_REFERRAL_BONUS": 25,
        "RATE_LIMIT_ENABLED": False,
        "PUBLIC_DOMAIN": "tripbudget.test",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture()
async def session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as db:
        yield db
    await engine.dispose()


@pytest_asyncio.fixture()
async def database(settings):
    db = Database(settings)
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest.fixture()
def credits(database, settings) -> CreditService:
    return CreditService(database, settings)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()
