from __future__ import annotations

import string

import pytest

from apps.trip_budget.core import ledger, referrals
from apps.trip_budget.core.ledger import decrement, get_or_create_counter
from apps.trip_budget.core.referrals import (
    ReferralError,
    ReferralUnavailable,
    issue_referral,
    redeem_referral,
)

GRANT = 25
BONUS = 25


async def _balance(session, user_id: str) -> int:
    counter = await get_or_create_counter(session, user_id, initial_grant=GRANT)
    return counter.message_count


@pytest.mark.asyncio
async def test_issue_referral_creates_unused_code(session):
    referral = await issue_referral(session, "alice", "  Friend@Example.com ")

    assert referral.id is not None
    assert referral.referrer_id == "alice"
    assert referral.referee_email == "friend@example.com"
    assert len(referral.referral_code) == referrals.REF_CODE_LENGTH
    assert set(referral.referral_code) <= set(string.ascii_uppercase + string.digits)
    assert referral.is_used is False
    assert referral.used_at is None


@pytest.mark.asyncio
async def test_issue_referral_without_email(session):
    referral = await issue_referral(session, "alice", "")
    assert referral.referee_email is None


@pytest.mark.asyncio
async def test_issue_referral_regenerates_colliding_code(session, monkeypatch):
    existing = await issue_referral(session, "alice")
    candidates = iter([existing.referral_code, "ZZZ999"])
    monkeypatch.setattr(referrals, "_generate_code", lambda: next(candidates))

    referral = await issue_referral(session, "carol")

    assert referral.referral_code == "ZZZ999"


@pytest.mark.asyncio
async def test_issue_referral_gives_up_after_repeated_collisions(session, monkeypatch):
    existing = await issue_referral(session, "alice")
    monkeypatch.setattr(referrals, "_generate_code", lambda: existing.referral_code)

    with pytest.raises(ReferralError):
        await issue_referral(session, "carol")


@pytest.mark.asyncio
async def test_redeem_credits_both_parties(session):
    referral = await issue_referral(session, "alice", "bob@example.com")
    alice_before = await _balance(session, "alice")

    result = await redeem_referral(session, referral.referral_code, "bob", bonus=BONUS, initial_grant=GRANT)

    assert result.id == referral.id
    assert result.is_used is True
    assert result.used_at is not None
    assert await _balance(session, "alice") == alice_before + BONUS
    assert await _balance(session, "bob") == GRANT + BONUS


@pytest.mark.asyncio
async def test_redeem_twice_fails_without_touching_balances(session):
    referral = await issue_referral(session, "alice")
    await redeem_referral(session, referral.referral_code, "bob", bonus=BONUS, initial_grant=GRANT)
    alice_after = await _balance(session, "alice")
    bob_after = await _balance(session, "bob")

    for redeemer in ("bob", "dave"):
        with pytest.raises(ReferralUnavailable) as excinfo:
            await redeem_referral(session, referral.referral_code, redeemer, bonus=BONUS, initial_grant=GRANT)
        assert str(excinfo.value) == "Invalid or already used referral code"

    assert await _balance(session, "alice") == alice_after
    assert await _balance(session, "bob") == bob_after


@pytest.mark.asyncio
async def test_redeem_unknown_code_fails_with_same_error(session):
    await get_or_create_counter(session, "bob", initial_grant=GRANT)

    with pytest.raises(ReferralUnavailable) as excinfo:
        await redeem_referral(session, "NONEXISTENT", "bob", bonus=BONUS, initial_grant=GRANT)

    assert str(excinfo.value) == "Invalid or already used referral code"
    assert await _balance(session, "bob") == GRANT


@pytest.mark.asyncio
async def test_redeem_empty_code_fails(session):
    with pytest.raises(ReferralUnavailable):
        await redeem_referral(session, "   ", "bob", bonus=BONUS, initial_grant=GRANT)


@pytest.mark.asyncio
async def test_redeem_matches_code_case_insensitively(session):
    referral = await issue_referral(session, "alice")

    await redeem_referral(session, f" {referral.referral_code.lower()} ", "bob", bonus=BONUS, initial_grant=GRANT)

    assert referral.is_used is True


@pytest.mark.asyncio
async def test_referrer_redeeming_own_code_gets_both_bonuses(session):
    referral = await issue_referral(session, "alice")

    await redeem_referral(session, referral.referral_code, "alice", bonus=BONUS, initial_grant=GRANT)

    assert referral.is_used is True
    assert await _balance(session, "alice") == GRANT + 2 * BONUS
    with pytest.raises(ReferralUnavailable):
        await redeem_referral(session, referral.referral_code, "bob", bonus=BONUS, initial_grant=GRANT)


@pytest.mark.asyncio
async def test_redeem_locks_counters_in_user_id_order(session, monkeypatch):
    locked: list[str] = []
    original = ledger.get_or_create_counter

    async def spy(session, user_id, *, initial_grant, for_update=False):
        if for_update:
            locked.append(user_id)
        return await original(session, user_id, initial_grant=initial_grant, for_update=for_update)

    monkeypatch.setattr(ledger, "get_or_create_counter", spy)
    first = await issue_referral(session, "zed")
    second = await issue_referral(session, "amy")

    await redeem_referral(session, first.referral_code, "amy", bonus=BONUS, initial_grant=GRANT)
    assert locked[:2] == ["amy", "zed"]

    locked.clear()
    await redeem_referral(session, second.referral_code, "zed", bonus=BONUS, initial_grant=GRANT)
    assert locked[:2] == ["amy", "zed"]
    assert await _balance(session, "amy") == GRANT + 2 * BONUS
    assert await _balance(session, "zed") == GRANT + 2 * BONUS


@pytest.mark.asyncio
async def test_message_and_referral_scenario(session):
    assert await _balance(session, "alice") == 25
    for _ in range(3):
        await decrement(session, "alice", initial_grant=GRANT)
    assert await _balance(session, "alice") == 22

    referral = await issue_referral(session, "alice", "bob@example.com")
    await redeem_referral(session, referral.referral_code, "bob", bonus=BONUS, initial_grant=GRANT)

    assert await _balance(session, "alice") == 47
    assert await _balance(session, "bob") == 50

    with pytest.raises(ReferralUnavailable):
        await redeem_referral(session, referral.referral_code, "bob", bonus=BONUS, initial_grant=GRANT)
    assert await _balance(session, "bob") == 50


@pytest.mark.asyncio
async def test_issued_codes_are_distinct(session):
    codes = {(await issue_referral(session, f"user-{i}")).referral_code for i in range(20)}
    assert len(codes) == 20


def test_generate_code_shape():
    for _ in range(50):
        code = referrals._generate_code()
        assert len(code) == 6
        assert code.isalnum() and code.upper() == code
