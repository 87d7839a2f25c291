"""
Quest progress domain model for Animochi.

Purpose
-------
Pure value object holding the state machine of a single quest instance so the
transition rules can be exercised without a database:

    NOT_STARTED --progress>0--> IN_PROGRESS --progress==target--> COMPLETED
    COMPLETED --claim--> CLAIMED
    NOT_STARTED | IN_PROGRESS --daily reset--> EXPIRED   (bulk UPDATE in storage)

Responsibilities
----------------
- Clamp progress to the target count
- Detect the transition into COMPLETED
- Reject progress on EXPIRED quests and claims on anything but COMPLETED

Non-Responsibilities
--------------------
- Persistence (handled by QuestInstanceRepository)
- Crediting rewards (handled by RewardClaimService)

Usage Example
-------------
>>> progress = QuestProgress(current_count=2, target_count=3)
>>> outcome = progress.advance(5)
>>> outcome.progress.current_count, outcome.just_completed
(3, True)
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from animochi.database.models.enums import QuestStatus
from animochi.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_positive,
)
from animochi.modules.shared.exceptions import InvalidStateError


@dataclass(frozen=True)
class ProgressOutcome:
    """Result of advancing a quest: the new state and whether it just completed."""

    progress: "QuestProgress"
    just_completed: bool


@dataclass(frozen=True)
class QuestProgress:
    """
    Immutable snapshot of a quest instance's counters and status.

    Invariants:
        0 <= current_count <= target_count
        status in {COMPLETED, CLAIMED} implies current_count == target_count
    """

    current_count: int
    target_count: int
    status: QuestStatus = QuestStatus.NOT_STARTED

    def __post_init__(self) -> None:
        validate_positive(self.target_count, "target_count")
        validate_non_negative(self.current_count, "current_count")

        if self.current_count > self.target_count:
            raise DomainValidationError(
                f"current_count {self.current_count} exceeds target_count {self.target_count}",
                field="current_count",
            )

        if self.status in (QuestStatus.COMPLETED, QuestStatus.CLAIMED) and (
            self.current_count != self.target_count
        ):
            raise DomainValidationError(
                f"{self.status.value} quest must be at target "
                f"({self.current_count}/{self.target_count})",
                field="status",
            )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def is_progressable(self) -> bool:
        return self.status in (QuestStatus.NOT_STARTED, QuestStatus.IN_PROGRESS)

    @property
    def is_claimable(self) -> bool:
        return self.status == QuestStatus.COMPLETED

    @property
    def percentage(self) -> int:
        """Progress as a whole percentage, 0-100."""
        return (self.current_count * 100) // self.target_count

    @property
    def remaining(self) -> int:
        return self.target_count - self.current_count

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def advance(self, amount: int) -> ProgressOutcome:
        """
        Add `amount` to the counter, clamped to the target.

        COMPLETED and CLAIMED quests are left unchanged. EXPIRED quests raise
        InvalidStateError.
        """
        validate_positive(amount, "amount")

        if self.status == QuestStatus.EXPIRED:
            raise InvalidStateError("Quest", self.status.value, "cannot progress an expired quest")

        if not self.is_progressable:
            return ProgressOutcome(progress=self, just_completed=False)

        new_count = min(self.current_count + amount, self.target_count)
        if new_count == self.target_count:
            return ProgressOutcome(
                progress=replace(self, current_count=new_count, status=QuestStatus.COMPLETED),
                just_completed=True,
            )

        return ProgressOutcome(
            progress=replace(self, current_count=new_count, status=QuestStatus.IN_PROGRESS),
            just_completed=False,
        )

    def claim(self) -> "QuestProgress":
        """COMPLETED -> CLAIMED; anything else raises InvalidStateError."""
        if self.status == QuestStatus.CLAIMED:
            raise InvalidStateError("Quest", self.status.value, "already claimed")
        if self.status == QuestStatus.EXPIRED:
            raise InvalidStateError("Quest", self.status.value, "quest expired before completion")
        if self.status != QuestStatus.COMPLETED:
            raise InvalidStateError(
                "Quest",
                self.status.value,
                f"not yet completed ({self.current_count}/{self.target_count})",
            )
        return replace(self, status=QuestStatus.CLAIMED)
