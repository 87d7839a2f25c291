"""
Unit Tests for the QuestProgress Domain Model
=============================================

Purpose
-------
Test the quest state machine without a database.

Test Coverage
-------------
- Construction invariants (counts, completed-at-target)
- advance(): clamping, completion detection, terminal statuses
- claim(): only COMPLETED is claimable

Testing Strategy
----------------
- Unit tests (fast, no database)
- AAA pattern (Arrange, Act, Assert)
- Test one behavior per test
"""

import pytest

from animochi.database.models.enums import QuestStatus
from animochi.domain.models import QuestProgress
from animochi.domain.models.base import DomainValidationError
from animochi.modules.shared.exceptions import InvalidStateError


# ============================================================================
# CONSTRUCTION TESTS
# ============================================================================


@pytest.mark.unit
class TestQuestProgressInvariants:
    """Test the invariants enforced at construction."""

    def test_new_quest_defaults_to_not_started(self):
        progress = QuestProgress(current_count=0, target_count=3)

        assert progress.status == QuestStatus.NOT_STARTED
        assert progress.remaining == 3
        assert progress.percentage == 0

    def test_target_must_be_positive(self):
        with pytest.raises(DomainValidationError):
            QuestProgress(current_count=0, target_count=0)

    def test_count_cannot_be_negative(self):
        with pytest.raises(DomainValidationError):
            QuestProgress(current_count=-1, target_count=3)

    def test_count_cannot_exceed_target(self):
        with pytest.raises(DomainValidationError) as exc_info:
            QuestProgress(current_count=4, target_count=3)

        assert exc_info.value.field == "current_count"

    @pytest.mark.parametrize("status", [QuestStatus.COMPLETED, QuestStatus.CLAIMED])
    def test_finished_quest_must_be_at_target(self, status):
        with pytest.raises(DomainValidationError):
            QuestProgress(current_count=2, target_count=3, status=status)

    def test_percentage_rounds_down(self):
        progress = QuestProgress(current_count=1, target_count=3, status=QuestStatus.IN_PROGRESS)

        assert progress.percentage == 33


# ============================================================================
# ADVANCE TESTS
# ============================================================================


@pytest.mark.unit
class TestQuestProgressAdvance:
    """Test progress increments and completion detection."""

    def test_first_progress_moves_to_in_progress(self):
        progress = QuestProgress(current_count=0, target_count=3)

        outcome = progress.advance(1)

        assert outcome.progress.current_count == 1
        assert outcome.progress.status == QuestStatus.IN_PROGRESS
        assert outcome.just_completed is False

    def test_reaching_target_completes(self):
        progress = QuestProgress(current_count=2, target_count=3, status=QuestStatus.IN_PROGRESS)

        outcome = progress.advance(1)

        assert outcome.progress.current_count == 3
        assert outcome.progress.status == QuestStatus.COMPLETED
        assert outcome.just_completed is True

    def test_overshoot_is_clamped_to_target(self):
        progress = QuestProgress(current_count=1, target_count=3, status=QuestStatus.IN_PROGRESS)

        outcome = progress.advance(10)

        assert outcome.progress.current_count == 3
        assert outcome.just_completed is True

    def test_completing_from_not_started_in_one_step(self):
        outcome = QuestProgress(current_count=0, target_count=1).advance(1)

        assert outcome.progress.status == QuestStatus.COMPLETED
        assert outcome.just_completed is True

    @pytest.mark.parametrize("status", [QuestStatus.COMPLETED, QuestStatus.CLAIMED])
    def test_finished_quest_is_unchanged(self, status):
        progress = QuestProgress(current_count=3, target_count=3, status=status)

        outcome = progress.advance(1)

        assert outcome.progress == progress
        assert outcome.just_completed is False

    def test_expired_quest_cannot_progress(self):
        progress = QuestProgress(current_count=1, target_count=3, status=QuestStatus.EXPIRED)

        with pytest.raises(InvalidStateError) as exc_info:
            progress.advance(1)

        assert exc_info.value.current_status == "EXPIRED"
        assert exc_info.value.error_code == "QUEST_EXPIRED"

    @pytest.mark.parametrize("amount", [0, -1])
    def test_amount_must_be_positive(self, amount):
        progress = QuestProgress(current_count=0, target_count=3)

        with pytest.raises(DomainValidationError):
            progress.advance(amount)

    def test_advance_does_not_mutate_original(self):
        progress = QuestProgress(current_count=0, target_count=3)

        progress.advance(2)

        assert progress.current_count == 0
        assert progress.status == QuestStatus.NOT_STARTED


# ============================================================================
# CLAIM & EXPIRE TESTS
# ============================================================================


@pytest.mark.unit
class TestQuestProgressClaim:
    """Test the COMPLETED -> CLAIMED transition."""

    def test_completed_quest_can_be_claimed(self):
        progress = QuestProgress(current_count=3, target_count=3, status=QuestStatus.COMPLETED)

        claimed = progress.claim()

        assert claimed.status == QuestStatus.CLAIMED
        assert claimed.current_count == 3

    def test_claim_twice_is_rejected(self):
        progress = QuestProgress(current_count=3, target_count=3, status=QuestStatus.CLAIMED)

        with pytest.raises(InvalidStateError) as exc_info:
            progress.claim()

        assert exc_info.value.error_code == "QUEST_CLAIMED"
        assert exc_info.value.reason == "already claimed"

    def test_unfinished_quest_cannot_be_claimed(self):
        progress = QuestProgress(current_count=1, target_count=3, status=QuestStatus.IN_PROGRESS)

        with pytest.raises(InvalidStateError) as exc_info:
            progress.claim()

        assert exc_info.value.current_status == "IN_PROGRESS"
        assert "1/3" in exc_info.value.reason

    def test_expired_quest_cannot_be_claimed(self):
        progress = QuestProgress(current_count=0, target_count=3, status=QuestStatus.EXPIRED)

        with pytest.raises(InvalidStateError) as exc_info:
            progress.claim()

        assert exc_info.value.error_code == "QUEST_EXPIRED"
