from __future__ import annotations

import asyncio

from apps.trip_budget.db import Base
from apps.trip_budget.infra.db import Database
from apps.trip_budget.infra.settings import Settings
from apps.trip_budget.services.credits import CreditService
from apps.trip_budget.core.referrals import ReferralUnavailable


async def main() -> None:
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        MESSAGE_COUNTER_INITIAL_COUNT=25,
        MESSAGE_COUNTER_REFERRAL_BONUS=25,
        RATE_LIMIT_ENABLED=False,
    )
    database = Database(settings)
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    credits = CreditService(database, settings)

    await credits.get_counter("alice")
    for _ in range(3):
        await credits.decrement("alice")
    print("Alice after 3 messages:", (await credits.get_counter("alice")).message_count)

    referral = await credits.issue_referral("alice", "bob@example.com")
    print("Issued referral code:", referral.referral_code)

    await credits.redeem_referral(referral.referral_code, "bob")
    print("Alice after referral:", (await credits.get_counter("alice")).message_count)
    print("Bob after referral:", (await credits.get_counter("bob")).message_count)

    try:
        await credits.redeem_referral(referral.referral_code, "bob")
    except ReferralUnavailable as exc:
        print("Second redemption rejected:", exc)
    print("Bob after retry:", (await credits.get_counter("bob")).message_count)

    await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
