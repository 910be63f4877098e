from __future__ import annotations

from prometheus_client import Counter

MESSAGES_CONSUMED = Counter(
    "trip_budget_messages_consumed_total",
    "Message credits debited from user balances",
)
CREDITS_GRANTED = Counter(
    "trip_budget_credits_granted_total",
    "Message credits added to user balances",
    ["reason"],
)
REFERRALS_ISSUED = Counter(
    "trip_budget_referrals_issued_total",
    "Referral codes issued",
)
REFERRAL_REDEMPTIONS = Counter(
    "trip_budget_referral_redemptions_total",
    "Referral redemption attempts by outcome",
    ["outcome"],
)
