"""
QuestInstance: one daily quest assigned to one user.
Schema only.

A row is created per template when the day's batch is assigned, advanced by
progress tracking, flipped to CLAIMED exactly once by the reward claim, and
marked EXPIRED by the daily reset.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from animochi.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime
from animochi.database.models.enums import QuestStatus


class QuestInstance(Base, IdMixin, TimestampMixin):
    """
    Per-user, per-day assignment of a quest template.

    Reward and target are copied from the template at assignment time so a
    catalog change never alters quests already handed out.
    """

    __tablename__ = "quest_instances"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", "cycle_date"),
        UniqueConstraint("user_id", "cycle_date", "slot"),
        CheckConstraint("current_count >= 0", name="current_count_non_negative"),
        CheckConstraint("current_count <= target_count", name="current_count_within_target"),
        CheckConstraint("target_count > 0", name="target_count_positive"),
        CheckConstraint("reward > 0", name="reward_positive"),
        Index("ix_quest_instances_user_cycle", "user_id", "cycle_date"),
        Index("ix_quest_instances_status_expires", "status", "expires_at"),
    )

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    quest_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quest_type: Mapped[str] = mapped_column(String(32), nullable=False)

    cycle_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot: Mapped[int] = mapped_column(Integer, nullable=False)

    current_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reward: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=QuestStatus.NOT_STARTED.value,
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<QuestInstance id={self.id} user={self.user_id} quest={self.quest_id} "
            f"{self.current_count}/{self.target_count} {self.status}>"
        )
