"""
Tests for RewardClaimService
============================

Purpose
-------
Verify that a completed quest pays out exactly once, atomically with its
status change, including under concurrent claims.

Test Coverage
-------------
- Successful claim credits the reward and marks the quest CLAIMED
- Claims on NOT_STARTED / IN_PROGRESS / EXPIRED / CLAIMED quests are rejected
- Concurrent claims: one winner, one credit
- Claim lazily creates the wallet inside the same transaction
- Rollback of the status flip when the credit fails
"""

import asyncio
from datetime import date

import pytest

from animochi.modules.shared.exceptions import (
    ConcurrencyLostError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import END_OF_DAY_UTC, event_names, quest_by_id


async def _complete_feed_quest(quests, user_id="user-1"):
    await quests.assign_daily_quests(user_id)
    await quests.update_quest_progress(user_id, "feed-creature-3", 3)


# ============================================================================
# HAPPY PATH
# ============================================================================


@pytest.mark.unit
class TestClaim:
    """Test successful claims."""

    async def test_claim_credits_reward(self, quests, claims, ledger):
        await ledger.get_or_create_wallet("user-1")
        await _complete_feed_quest(quests)

        result = await claims.claim("user-1", "feed-creature-3")

        assert result.reward == 50
        assert result.new_balance == 3050
        assert result.to_dict() == {"reward": 50, "new_balance": 3050}
        assert await ledger.get_balance("user-1") == 3050

    async def test_claim_marks_quest_claimed(self, quests, claims, clock):
        await _complete_feed_quest(quests)

        await claims.claim("user-1", "feed-creature-3")

        feed = quest_by_id(await quests.assign_daily_quests("user-1"), "feed-creature-3")
        assert feed["status"] == "CLAIMED"
        assert feed["claimed_at"] == clock.now()

    async def test_claim_records_quest_reward_transaction(self, quests, claims, ledger):
        await _complete_feed_quest(quests)

        await claims.claim("user-1", "feed-creature-3")

        transactions = await ledger.get_transactions("user-1")
        assert len(transactions) == 1
        assert transactions[0]["reason"] == "quest-reward"
        assert transactions[0]["amount"] == 50
        assert transactions[0]["metadata"]["quest_id"] == "feed-creature-3"
        assert transactions[0]["metadata"]["old_balance"] == 3000

    async def test_claim_creates_missing_wallet(self, quests, claims, ledger):
        await _complete_feed_quest(quests)

        result = await claims.claim("user-1", "feed-creature-3")

        assert result.new_balance == 3050
        report = await ledger.verify_ledger("user-1")
        assert report["consistent"] is True

    async def test_completed_quest_stays_claimable_after_reset(self, quests, claims, clock):
        await _complete_feed_quest(quests)
        clock.set(END_OF_DAY_UTC)
        await quests.reset_all_daily_quests()

        result = await claims.claim("user-1", "feed-creature-3")

        assert result.reward == 50

    async def test_claim_event(self, quests, claims, ledger, captured_events):
        await ledger.get_or_create_wallet("user-1")
        await _complete_feed_quest(quests)
        captured_events.clear()

        await claims.claim("user-1", "feed-creature-3")

        names = event_names(captured_events)
        assert names == ["quest.reward_claimed"]
        # The joined credit publishes no wallet.credited of its own
        assert captured_events[-1][1]["new_balance"] == 3050

    async def test_claim_announces_the_wallet_it_creates(self, quests, claims, captured_events):
        await _complete_feed_quest(quests)

        await claims.claim("user-1", "feed-creature-3")

        names = event_names(captured_events)
        assert names[-2:] == ["wallet.created", "quest.reward_claimed"]
        created = captured_events[-2][1]
        assert created["user_id"] == "user-1"
        assert created["balance"] == 3000

    async def test_earlier_days_reward_survives_reassignment(self, quests, claims, ledger, clock):
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "customize-1")
        clock.advance(days=1)
        await quests.reset_all_daily_quests()
        await quests.assign_daily_quests("user-1")

        result = await claims.claim("user-1", "customize-1")

        assert result.reward == 10
        assert result.new_balance == 3010
        transactions = await ledger.get_transactions("user-1")
        assert transactions[0]["metadata"]["cycle_date"] == "2025-03-14"

        # Today's instance is untouched and is what a further claim reports
        with pytest.raises(InvalidStateError) as exc_info:
            await claims.claim("user-1", "customize-1")
        assert exc_info.value.error_code == "QUEST_NOT_STARTED"

    async def test_claim_for_explicit_cycle_date(self, quests, claims, clock):
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "customize-1")
        clock.advance(days=1)
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "customize-1")

        first = await claims.claim("user-1", "customize-1", cycle_date="2025-03-14")
        second = await claims.claim("user-1", "customize-1", cycle_date=date(2025, 3, 15))

        assert (first.new_balance, second.new_balance) == (3010, 3020)
        with pytest.raises(NotFoundError):
            await claims.claim("user-1", "customize-1", cycle_date="2025-03-16")


# ============================================================================
# REJECTIONS
# ============================================================================


@pytest.mark.unit
class TestClaimRejections:
    """Test claims that must not pay out."""

    async def test_second_claim_is_rejected(self, quests, claims, ledger):
        await _complete_feed_quest(quests)
        await claims.claim("user-1", "feed-creature-3")

        with pytest.raises(InvalidStateError) as exc_info:
            await claims.claim("user-1", "feed-creature-3")

        assert exc_info.value.error_code == "QUEST_CLAIMED"
        assert await ledger.get_balance("user-1") == 3050

    async def test_unfinished_quest_is_rejected(self, quests, claims, ledger):
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "feed-creature-3", 2)

        with pytest.raises(InvalidStateError) as exc_info:
            await claims.claim("user-1", "feed-creature-3")

        assert exc_info.value.current_status == "IN_PROGRESS"
        assert await ledger.get_transactions("user-1") == []

    async def test_not_started_quest_is_rejected(self, quests, claims):
        await quests.assign_daily_quests("user-1")

        with pytest.raises(InvalidStateError) as exc_info:
            await claims.claim("user-1", "customize-1")

        assert exc_info.value.error_code == "QUEST_NOT_STARTED"

    async def test_expired_quest_is_rejected(self, quests, claims, clock):
        await quests.assign_daily_quests("user-1")
        clock.set(END_OF_DAY_UTC)
        await quests.reset_daily_quests("user-1")

        with pytest.raises(InvalidStateError) as exc_info:
            await claims.claim("user-1", "feed-creature-3")

        assert exc_info.value.error_code == "QUEST_EXPIRED"

    async def test_unknown_quest(self, claims):
        with pytest.raises(NotFoundError):
            await claims.claim("user-1", "feed-creature-3")

    async def test_bad_identifiers(self, claims):
        with pytest.raises(ValidationError):
            await claims.claim("user-1", "  ")

    async def test_failed_credit_rolls_back_status(self, quests, claims, ledger, mocker):
        await _complete_feed_quest(quests)
        mocker.patch.object(ledger, "credit", side_effect=RuntimeError("ledger down"))

        with pytest.raises(RuntimeError):
            await claims.claim("user-1", "feed-creature-3")

        feed = quest_by_id(await quests.assign_daily_quests("user-1"), "feed-creature-3")
        assert feed["status"] == "COMPLETED"
        assert feed["claimed_at"] is None


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.unit
class TestConcurrentClaims:
    """Test the exactly-once guarantee under parallel claims."""

    async def test_parallel_claims_credit_once(self, quests, claims, ledger):
        await ledger.get_or_create_wallet("user-1")
        await _complete_feed_quest(quests)

        results = await asyncio.gather(
            *(claims.claim("user-1", "feed-creature-3") for _ in range(5)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, (InvalidStateError, ConcurrencyLostError))]
        assert len(winners) == 1
        assert len(losers) == 4
        assert winners[0].new_balance == 3050
        assert await ledger.get_balance("user-1") == 3050
        assert len(await ledger.get_transactions("user-1")) == 1

    async def test_parallel_claims_of_different_quests(self, quests, claims, ledger):
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "feed-creature-3", 3)
        await quests.update_quest_progress("user-1", "customize-1", 1)
        await quests.update_quest_progress("user-1", "interact-with-multiple-2", 2)

        await asyncio.gather(
            claims.claim("user-1", "feed-creature-3"),
            claims.claim("user-1", "customize-1"),
            claims.claim("user-1", "interact-with-multiple-2"),
        )

        assert await ledger.get_balance("user-1") == 3000 + 50 + 10 + 30
        report = await ledger.verify_ledger("user-1")
        assert report["consistent"] is True
        assert report["transaction_count"] == 3
