"""Message credits and referral bonuses as seen by request handlers."""

from __future__ import annotations

import logging

from apps.trip_budget.core import ledger, referrals
from apps.trip_budget.core.referrals import ReferralError
from apps.trip_budget.db.models import MessageCounter, Referral
from apps.trip_budget.infra import metrics
from apps.trip_budget.infra.db import Database
from apps.trip_budget.infra.settings import Settings

logger = logging.getLogger(__name__)


class CreditService:
    """Runs each ledger and referral operation in its own transaction.

    One instance is built at process start and shared by all requests.
    """

    def __init__(self, database: Database, settings: Settings) -> None:
        self._database = database
        self._settings = settings

    @property
    def initial_grant(self) -> int:
        return self._settings.message_counter_initial_count

    @property
    def referral_bonus(self) -> int:
        return self._settings.message_counter_referral_bonus

    async def get_counter(self, user_id: str) -> MessageCounter:
        async with self._database.transaction() as session:
            return await ledger.get_or_create_counter(session, user_id, initial_grant=self.initial_grant)

    async def decrement(self, user_id: str, amount: int = 1) -> MessageCounter:
        async with self._database.transaction() as session:
            before = await ledger.get_or_create_counter(
                session, user_id, initial_grant=self.initial_grant, for_update=True
            )
            previous = before.message_count
            counter = await ledger.decrement(session, user_id, amount, initial_grant=self.initial_grant)
        metrics.MESSAGES_CONSUMED.inc(previous - counter.message_count)
        return counter

    async def increment(self, user_id: str, amount: int, reason: str) -> MessageCounter:
        async with self._database.transaction() as session:
            counter = await ledger.increment(session, user_id, amount, reason, initial_grant=self.initial_grant)
        metrics.CREDITS_GRANTED.labels(reason=reason).inc(amount)
        return counter

    async def has_enough(self, user_id: str, required: int = 1) -> bool:
        async with self._database.transaction() as session:
            return await ledger.has_enough(session, user_id, required, initial_grant=self.initial_grant)

    async def issue_referral(self, referrer_id: str, email: str | None = None) -> Referral:
        async with self._database.transaction() as session:
            referral = await referrals.issue_referral(session, referrer_id, email)
        metrics.REFERRALS_ISSUED.inc()
        return referral

    async def redeem_referral(self, code: str, user_id: str) -> bool:
        try:
            async with self._database.transaction() as session:
                await referrals.redeem_referral(
                    session,
                    code,
                    user_id,
                    bonus=self.referral_bonus,
                    initial_grant=self.initial_grant,
                )
        except ReferralError:
            metrics.REFERRAL_REDEMPTIONS.labels(outcome="rejected").inc()
            raise
        except Exception:
            metrics.REFERRAL_REDEMPTIONS.labels(outcome="failed").inc()
            logger.warning("Referral redemption for user %s rolled back", user_id)
            raise
        metrics.REFERRAL_REDEMPTIONS.labels(outcome="redeemed").inc()
        metrics.CREDITS_GRANTED.labels(reason="referral_sent").inc(self.referral_bonus)
        metrics.CREDITS_GRANTED.labels(reason="referral_used").inc(self.referral_bonus)
        return True

    def invite_url(self, referral: Referral) -> str | None:
        domain = self._settings.public_domain
        if not domain:
            return None
        if not domain.startswith(("http://", "https://")):
            domain = f"https://{domain}"
        return f"{domain.rstrip('/')}/invite/{referral.referral_code}"
