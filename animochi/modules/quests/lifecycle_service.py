"""
Quest Lifecycle Service
=======================

Purpose
-------
Assigns each user a daily batch of quest instances from the catalog, tracks
gameplay progress against them, detects completion and expires stale
instances at the daily reset.

Domain
------
- Idempotent daily assignment (one batch per user per quest day)
- Progress tracking by quest type or by quest id, clamped to the target
- Completion detection (never credits anything; claiming is separate)
- Reset: NOT_STARTED / IN_PROGRESS instances past their expiry -> EXPIRED
- Completed-quest history and per-status counts

Design Notes
------------
- Transition rules live in `QuestProgress`; this service loads rows, applies
  the domain object and writes the result back under a row lock.
- Concurrent first assignments collide on the unique
  (user_id, cycle_date, slot) constraint inside a savepoint; the loser
  discards its batch and returns the winner's.
- COMPLETED but unclaimed instances are never expired and stay claimable,
  even after a later day's batch reassigns the same template
  (`find_claimable` prefers them over newer instances).
- Events are published after the transaction commits.
"""

from __future__ import annotations

import random
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError

from animochi.core.logging.logger import get_logger
from animochi.core.validation.input_validator import InputValidator
from animochi.database.models.enums import QuestStatus, QuestType
from animochi.database.models.progression import QuestInstance
from animochi.domain.models.quest import QuestProgress
from animochi.modules.shared.base_repository import BaseRepository
from animochi.modules.shared.base_service import BaseService
from animochi.modules.shared.exceptions import InvalidStateError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from animochi.core.clock import Clock
    from animochi.core.config.manager import ConfigManager
    from animochi.core.database.service import DatabaseService
    from animochi.core.event.bus import EventBus
    from animochi.modules.quests.catalog import QuestCatalog


PROGRESSABLE = [status.value for status in QuestStatus.progressable()]


# ============================================================================
# Repository
# ============================================================================


class QuestInstanceRepository(BaseRepository[QuestInstance]):
    """Repository for QuestInstance model."""

    async def find_for_cycle(
        self,
        session: AsyncSession,
        user_id: str,
        cycle_date: Any,
        for_update: bool = False,
    ) -> List[QuestInstance]:
        return await self.find_many_where(
            session,
            QuestInstance.user_id == user_id,
            QuestInstance.cycle_date == cycle_date,
            order_by=[QuestInstance.slot],
            for_update=for_update,
        )

    async def find_latest(
        self,
        session: AsyncSession,
        user_id: str,
        quest_id: str,
        cycle_date: Optional[date] = None,
        for_update: bool = False,
    ) -> Optional[QuestInstance]:
        """Most recent instance of a template for a user, or the one of `cycle_date`."""
        conditions = [QuestInstance.user_id == user_id, QuestInstance.quest_id == quest_id]
        if cycle_date is not None:
            conditions.append(QuestInstance.cycle_date == cycle_date)

        return await self.find_one_where(
            session,
            *conditions,
            order_by=[QuestInstance.cycle_date.desc(), QuestInstance.id.desc()],
            for_update=for_update,
        )

    async def find_claimable(
        self,
        session: AsyncSession,
        user_id: str,
        quest_id: str,
        cycle_date: Optional[date] = None,
    ) -> Optional[QuestInstance]:
        """
        The instance a claim of `quest_id` targets.

        The newest COMPLETED instance wins over later days' instances of the
        same template, so a reward earned yesterday is still reachable after
        today's batch reassigned that template. Without a COMPLETED one, the
        latest instance is returned so the caller can report its status.
        """
        conditions = [QuestInstance.user_id == user_id, QuestInstance.quest_id == quest_id]
        if cycle_date is not None:
            conditions.append(QuestInstance.cycle_date == cycle_date)

        return await self.find_one_where(
            session,
            *conditions,
            order_by=[
                case((QuestInstance.status == QuestStatus.COMPLETED.value, 0), else_=1),
                QuestInstance.cycle_date.desc(),
                QuestInstance.id.desc(),
            ],
        )

    async def expire_stale(
        self, session: AsyncSession, now: datetime, user_id: Optional[str] = None
    ) -> int:
        conditions = [
            QuestInstance.status.in_(PROGRESSABLE),
            QuestInstance.expires_at <= now,
        ]
        if user_id is not None:
            conditions.append(QuestInstance.user_id == user_id)

        return await self.update_where(
            session,
            *conditions,
            values={"status": QuestStatus.EXPIRED.value, "updated_at": now},
        )


# ============================================================================
# QuestLifecycleService
# ============================================================================


class QuestLifecycleService(BaseService):
    """
    Daily quest assignment, progress and expiry.

    Public Methods
    --------------
    - assign_daily_quests() -> Today's batch, created if missing
    - get_daily_quests() -> Today's batch enriched with display fields
    - track_progress() -> Advance every matching quest by type
    - update_quest_progress() -> Advance one quest by id
    - reset_daily_quests() / reset_all_daily_quests() -> Expire stale quests
    - get_completed_quests() -> Recent COMPLETED / CLAIMED history
    - count_quests_by_status() -> Count of a user's quests in one status
    """

    def __init__(
        self,
        database: DatabaseService,
        catalog: QuestCatalog,
        clock: Clock,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._db = database
        self._catalog = catalog
        self._clock = clock
        self._rng = rng or random.Random()

        self._quests = QuestInstanceRepository(
            model_class=QuestInstance,
            logger=get_logger(f"{__name__}.QuestInstanceRepository"),
        )

    @property
    def repository(self) -> QuestInstanceRepository:
        return self._quests

    @property
    def daily_count(self) -> int:
        return self.get_int_config("quests.daily_count", 3, min_value=1)

    # ========================================================================
    # PUBLIC API - Assignment
    # ========================================================================

    async def assign_daily_quests(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Return the user's quests for the current day, assigning them if needed.

        Idempotent per quest day: a second call returns the same instances.
        """
        user_id = InputValidator.validate_identifier(user_id)
        now = self._clock.resolve(now)

        self.log_operation("assign_daily_quests", user_id=user_id)

        async with self._db.get_transaction() as session:
            instances, created = await self._assign_in_session(session, user_id, now)
            quests = [self._serialize(instance) for instance in instances]

        if created:
            await self.emit_event(
                "quests.assigned",
                {
                    "user_id": user_id,
                    "cycle_date": str(self._clock.cycle_date(now)),
                    "quest_ids": [quest["quest_id"] for quest in quests],
                },
            )

        return quests

    async def get_daily_quests(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Today's quests with the template's title, description and icon."""
        quests = await self.assign_daily_quests(user_id, now)
        return [
            {
                **quest,
                **self._catalog.display_for(
                    quest["quest_id"], quest["quest_type"], quest["target_count"]
                ),
            }
            for quest in quests
        ]

    async def _assign_in_session(
        self, session: AsyncSession, user_id: str, now: datetime
    ) -> Tuple[List[QuestInstance], bool]:
        cycle_date = self._clock.cycle_date(now)

        existing = await self._quests.find_for_cycle(session, user_id, cycle_date)
        if existing:
            return existing, False

        templates = self._catalog.select_random(self._rng, self.daily_count)
        expires_at = self._clock.end_of_cycle(now)

        instances = [
            QuestInstance(
                user_id=user_id,
                quest_id=template.id,
                quest_type=template.type.value,
                cycle_date=cycle_date,
                slot=slot,
                current_count=0,
                target_count=template.target_count,
                reward=template.reward,
                status=QuestStatus.NOT_STARTED.value,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            for slot, template in enumerate(templates)
        ]

        try:
            async with session.begin_nested():
                self._quests.add_many(session, instances)
                await self._quests.flush(session)
        except IntegrityError:
            winner = await self._quests.find_for_cycle(session, user_id, cycle_date)
            if not winner:
                raise
            self.log.info(
                "Daily quest assignment raced; returning existing batch",
                extra={"user_id": user_id, "cycle_date": str(cycle_date)},
            )
            return winner, False

        self.log.info(
            f"Assigned {len(instances)} daily quests to {user_id}",
            extra={
                "user_id": user_id,
                "cycle_date": str(cycle_date),
                "quest_ids": [instance.quest_id for instance in instances],
                "expires_at": expires_at.isoformat(),
            },
        )
        return instances, True

    # ========================================================================
    # PUBLIC API - Progress
    # ========================================================================

    async def track_progress(
        self,
        user_id: str,
        quest_type: str,
        amount: int = 1,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Advance every current quest of `quest_type` that is still in progress.

        Returns:
            True if at least one quest became COMPLETED on this call
        """
        user_id = InputValidator.validate_identifier(user_id)
        quest_type = InputValidator.validate_choice(
            quest_type, field_name="quest_type", valid_choices=QuestType.values()
        )
        amount = InputValidator.validate_positive_integer(amount, field_name="amount")
        now = self._clock.resolve(now)

        self.log_operation("track_progress", user_id=user_id, quest_type=quest_type, amount=amount)

        completed: List[Dict[str, Any]] = []

        async with self._db.get_transaction() as session:
            instances = await self._quests.find_many_where(
                session,
                QuestInstance.user_id == user_id,
                QuestInstance.cycle_date == self._clock.cycle_date(now),
                QuestInstance.quest_type == quest_type,
                QuestInstance.status.in_(PROGRESSABLE),
                QuestInstance.expires_at > now,
                order_by=[QuestInstance.slot],
                for_update=True,
            )

            for instance in instances:
                just_completed = self._advance(instance, amount, now)
                if just_completed:
                    completed.append(self._serialize(instance))

        for quest in completed:
            await self.emit_event("quest.completed", quest)

        return bool(completed)

    async def update_quest_progress(
        self,
        user_id: str,
        quest_id: str,
        amount: int = 1,
        now: Optional[datetime] = None,
        cycle_date: Optional[Union[date, str]] = None,
    ) -> Dict[str, Any]:
        """
        Advance one quest instance.

        The instance is the one assigned on `cycle_date` when given, else the
        latest one for `quest_id`, which is today's once today's batch holds
        that template. COMPLETED and CLAIMED quests are returned unchanged.

        Returns:
            Dict with quest, just_completed and reward (0 unless just completed)

        Raises:
            NotFoundError: The user has no instance of this quest
            InvalidStateError: The quest is EXPIRED or its day is over
        """
        user_id = InputValidator.validate_identifier(user_id)
        quest_id = InputValidator.validate_identifier(quest_id, field_name="quest_id")
        amount = InputValidator.validate_positive_integer(amount, field_name="amount")
        if cycle_date is not None:
            cycle_date = InputValidator.validate_cycle_date(cycle_date)
        now = self._clock.resolve(now)

        self.log_operation("update_quest_progress", user_id=user_id, quest_id=quest_id, amount=amount)

        async with self._db.get_transaction() as session:
            instance = await self._quests.find_latest(
                session, user_id, quest_id, cycle_date=cycle_date, for_update=True
            )
            if instance is None:
                raise NotFoundError("Quest", quest_id)

            if instance.status in PROGRESSABLE and instance.expires_at <= now:
                raise InvalidStateError("Quest", QuestStatus.EXPIRED.value, "quest day is over")

            just_completed = self._advance(instance, amount, now)
            quest = self._serialize(instance)

        if just_completed:
            await self.emit_event("quest.completed", quest)

        return {
            "quest": quest,
            "just_completed": just_completed,
            "reward": quest["reward"] if just_completed else 0,
        }

    def _advance(self, instance: QuestInstance, amount: int, now: datetime) -> bool:
        progress = QuestProgress(
            current_count=instance.current_count,
            target_count=instance.target_count,
            status=QuestStatus(instance.status),
        )
        outcome = progress.advance(amount)

        if outcome.progress == progress:
            return False

        instance.current_count = outcome.progress.current_count
        instance.status = outcome.progress.status.value
        instance.updated_at = now
        if outcome.just_completed:
            instance.completed_at = now

        self.log.info(
            f"Quest progress: {instance.quest_id} "
            f"{progress.current_count} -> {instance.current_count}/{instance.target_count}",
            extra={
                "user_id": instance.user_id,
                "quest_id": instance.quest_id,
                "old_count": progress.current_count,
                "new_count": instance.current_count,
                "status": instance.status,
                "just_completed": outcome.just_completed,
            },
        )
        return outcome.just_completed

    # ========================================================================
    # PUBLIC API - Reset
    # ========================================================================

    async def reset_daily_quests(self, user_id: str, now: Optional[datetime] = None) -> int:
        """Expire the user's unfinished quests whose day has ended. Returns the count."""
        user_id = InputValidator.validate_identifier(user_id)
        return await self._reset(now, user_id)

    async def reset_all_daily_quests(self, now: Optional[datetime] = None) -> int:
        """Expire every user's unfinished quests whose day has ended. Returns the count."""
        return await self._reset(now, None)

    async def _reset(self, now: Optional[datetime], user_id: Optional[str]) -> int:
        now = self._clock.resolve(now)

        self.log_operation("reset_daily_quests", user_id=user_id or "*", scope="user" if user_id else "all")

        async with self._db.get_transaction() as session:
            expired = await self._quests.expire_stale(session, now, user_id)

        self.log.info(
            f"Daily reset expired {expired} quests",
            extra={"user_id": user_id or "*", "expired_count": expired, "now": now.isoformat()},
        )

        if expired:
            await self.emit_event(
                "quests.expired",
                {"user_id": user_id, "expired_count": expired, "at": now.isoformat()},
            )

        return expired

    # ========================================================================
    # PUBLIC API - History
    # ========================================================================

    async def get_completed_quests(
        self, user_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Most recently completed quests (COMPLETED or CLAIMED), newest first."""
        user_id = InputValidator.validate_identifier(user_id)
        if limit is None:
            limit = self.get_int_config("quests.completed_history_limit", 30, min_value=1)
        limit = InputValidator.validate_positive_integer(limit, field_name="limit", max_value=500)

        async with self._db.get_session() as session:
            rows = await self._quests.find_many_where(
                session,
                QuestInstance.user_id == user_id,
                QuestInstance.status.in_([QuestStatus.COMPLETED.value, QuestStatus.CLAIMED.value]),
                order_by=[QuestInstance.completed_at.desc(), QuestInstance.id.desc()],
                limit=limit,
            )
            return [self._serialize(row) for row in rows]

    async def count_quests_by_status(self, user_id: str, status: str) -> int:
        user_id = InputValidator.validate_identifier(user_id)
        status = InputValidator.validate_choice(
            status, field_name="status", valid_choices=[s.value for s in QuestStatus]
        )

        async with self._db.get_session() as session:
            return await self._quests.count(
                session,
                QuestInstance.user_id == user_id,
                QuestInstance.status == status,
            )

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    @staticmethod
    def _serialize(instance: QuestInstance) -> Dict[str, Any]:
        return {
            "id": instance.id,
            "user_id": instance.user_id,
            "quest_id": instance.quest_id,
            "quest_type": instance.quest_type,
            "cycle_date": instance.cycle_date,
            "slot": instance.slot,
            "current_count": instance.current_count,
            "target_count": instance.target_count,
            "reward": instance.reward,
            "status": instance.status,
            "created_at": instance.created_at,
            "updated_at": instance.updated_at,
            "completed_at": instance.completed_at,
            "claimed_at": instance.claimed_at,
            "expires_at": instance.expires_at,
        }
