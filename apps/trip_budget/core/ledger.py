from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from apps.trip_budget.db.models import MessageCounter, utcnow

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    pass


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise LedgerError(f"unsupported database dialect: {dialect}")


async def _select_counter(session: AsyncSession, user_id: str, *, for_update: bool) -> MessageCounter | None:
    stmt = select(MessageCounter).where(MessageCounter.user_id == user_id)
    if for_update:
        # refresh rows already in the identity map with the locked values
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return await session.scalar(stmt)


async def get_or_create_counter(
    session: AsyncSession,
    user_id: str,
    *,
    initial_grant: int,
    for_update: bool = False,
) -> MessageCounter:
    if not user_id:
        raise ValueError("user_id is required")
    if initial_grant < 0:
        raise ValueError("initial_grant must not be negative")

    counter = await _select_counter(session, user_id, for_update=for_update)
    if counter is not None:
        return counter

    now = utcnow()
    insert = _dialect_insert(session)
    stmt = (
        insert(MessageCounter)
        .values(user_id=user_id, message_count=initial_grant, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    result = await session.execute(stmt)
    counter = await _select_counter(session, user_id, for_update=for_update)
    if counter is None:
        raise LedgerError(f"message counter for user {user_id} could not be created")
    if result.rowcount:
        logger.info("Created message counter for user %s with %s messages", user_id, initial_grant)
    return counter


async def decrement(
    session: AsyncSession,
    user_id: str,
    amount: int = 1,
    *,
    initial_grant: int,
) -> MessageCounter:
    if amount < 0:
        raise ValueError("amount must not be negative")
    counter = await get_or_create_counter(session, user_id, initial_grant=initial_grant, for_update=True)
    if amount == 0:
        return counter

    # clamp at zero, the balance is never observably negative
    counter.message_count = max(counter.message_count - amount, 0)
    counter.updated_at = utcnow()
    await session.flush()
    return counter


async def increment(
    session: AsyncSession,
    user_id: str,
    amount: int,
    reason: str,
    *,
    initial_grant: int,
) -> MessageCounter:
    if amount < 0:
        raise ValueError("amount must not be negative")
    counter = await get_or_create_counter(session, user_id, initial_grant=initial_grant, for_update=True)
    if amount == 0:
        return counter

    counter.message_count += amount
    counter.updated_at = utcnow()
    await session.flush()
    logger.info("User %s earned %s messages for: %s", user_id, amount, reason)
    return counter


async def has_enough(
    session: AsyncSession,
    user_id: str,
    required: int = 1,
    *,
    initial_grant: int,
) -> bool:
    counter = await get_or_create_counter(session, user_id, initial_grant=initial_grant)
    return counter.message_count >= required
