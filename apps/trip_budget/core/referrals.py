from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.trip_budget.core import ledger
from apps.trip_budget.db.models import Referral, utcnow

logger = logging.getLogger(__name__)

REF_CODE_LENGTH = 6
REF_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 10


class ReferralError(Exception):
    pass


class ReferralUnavailable(ReferralError):
    def __init__(self) -> None:
        super().__init__("Invalid or already used referral code")


def _generate_code() -> str:
    return "".join(secrets.choice(REF_CODE_ALPHABET) for _ in range(REF_CODE_LENGTH))


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def _unused_code(session: AsyncSession) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = _generate_code()
        exists = await session.scalar(select(Referral.id).where(Referral.referral_code == candidate))
        if not exists:
            return candidate
    raise ReferralError("could not generate a unique referral code")


async def issue_referral(
    session: AsyncSession,
    referrer_id: str,
    referee_email: str | None = None,
) -> Referral:
    if not referrer_id:
        raise ValueError("referrer_id is required")
    email = (referee_email or "").strip().lower() or None
    referral = Referral(
        referrer_id=referrer_id,
        referee_email=email,
        referral_code=await _unused_code(session),
        is_used=False,
    )
    session.add(referral)
    await session.flush()
    logger.info("User %s issued referral code %s", referrer_id, referral.referral_code)
    return referral


async def redeem_referral(
    session: AsyncSession,
    code: str,
    redeemer_id: str,
    *,
    bonus: int,
    initial_grant: int,
) -> Referral:
    """Consume a referral code and credit both the referrer and the redeemer.

    The mark-used write and both credits share the caller's transaction; the
    caller commits once all three have succeeded.
    """
    if not redeemer_id:
        raise ValueError("redeemer_id is required")
    code = normalize_code(code or "")
    if not code:
        raise ReferralUnavailable()

    referral = await session.scalar(
        select(Referral)
        .where(Referral.referral_code == code, Referral.is_used.is_(False))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if referral is None:
        logger.warning("Rejected referral code %s for user %s", code, redeemer_id)
        raise ReferralUnavailable()

    referral.is_used = True
    referral.used_at = utcnow()
    await session.flush()

    # counters are always locked in user_id order
    for user_id in sorted({referral.referrer_id, redeemer_id}):
        await ledger.get_or_create_counter(session, user_id, initial_grant=initial_grant, for_update=True)

    await ledger.increment(session, referral.referrer_id, bonus, "referral_sent", initial_grant=initial_grant)
    await ledger.increment(session, redeemer_id, bonus, "referral_used", initial_grant=initial_grant)
    logger.info("User %s redeemed referral %s from %s", redeemer_id, referral.id, referral.referrer_id)
    return referral
