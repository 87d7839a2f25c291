"""
Reward Claim Service
====================

Purpose
-------
The only path that turns a COMPLETED quest into CLAIMED and the only caller
of `WalletLedgerService.credit` for quest rewards.

Exactly-once guarantee
----------------------
Inside one storage transaction:

1. `UPDATE quest_instances SET status='CLAIMED' WHERE id=? AND status='COMPLETED'`
2. Only if that statement touched exactly one row, credit the reward.

The database evaluates the WHERE clause at write time, so of several
concurrent claims on the same instance exactly one sees a row count of 1.
Every other caller gets `ConcurrencyLostError` and credits nothing. If the
credit fails, the status flip rolls back with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from animochi.core.validation.input_validator import InputValidator
from animochi.database.models.enums import QuestStatus, TransactionReason
from animochi.database.models.progression import QuestInstance
from animochi.domain.models.quest import QuestProgress
from animochi.modules.shared.base_service import BaseService
from animochi.modules.shared.exceptions import ConcurrencyLostError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from animochi.core.clock import Clock
    from animochi.core.config.manager import ConfigManager
    from animochi.core.database.service import DatabaseService
    from animochi.core.event.bus import EventBus
    from animochi.modules.quests.lifecycle_service import QuestLifecycleService
    from animochi.modules.wallet.ledger_service import WalletLedgerService


@dataclass(frozen=True)
class ClaimResult:
    reward: int
    new_balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {"reward": self.reward, "new_balance": self.new_balance}


class RewardClaimService(BaseService):
    """
    Claims quest rewards into the wallet, at most once per quest instance.

    Public Methods
    --------------
    - claim() -> ClaimResult(reward, new_balance)
    """

    def __init__(
        self,
        database: DatabaseService,
        quests: QuestLifecycleService,
        ledger: WalletLedgerService,
        clock: Clock,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._db = database
        self._quests = quests.repository
        self._ledger = ledger
        self._clock = clock

    async def claim(
        self,
        user_id: str,
        quest_id: str,
        now: Optional[datetime] = None,
        cycle_date: Optional[Union[date, str]] = None,
    ) -> ClaimResult:
        """
        Claim the reward of one instance of `quest_id`.

        With `cycle_date`, the instance assigned that day. Otherwise the newest
        COMPLETED instance, so a reward earned on an earlier day stays
        claimable after the template is reassigned; when none is COMPLETED,
        the latest instance is checked and its status reported.

        Raises:
            NotFoundError: No such quest for this user
            InvalidStateError: Quest is not COMPLETED (details carry the status)
            ConcurrencyLostError: Another request claimed it first
        """
        user_id = InputValidator.validate_identifier(user_id)
        quest_id = InputValidator.validate_identifier(quest_id, field_name="quest_id")
        if cycle_date is not None:
            cycle_date = InputValidator.validate_cycle_date(cycle_date)
        now = self._clock.resolve(now)

        self.log_operation("claim", user_id=user_id, quest_id=quest_id)

        async with self._db.get_transaction() as session:
            instance = await self._quests.find_claimable(session, user_id, quest_id, cycle_date)
            if instance is None:
                raise NotFoundError("Quest", quest_id)

            # Raises InvalidStateError for anything but COMPLETED
            QuestProgress(
                current_count=instance.current_count,
                target_count=instance.target_count,
                status=QuestStatus(instance.status),
            ).claim()

            instance_id = instance.id
            reward = instance.reward
            instance_cycle = str(instance.cycle_date)

            won = await self._quests.update_where(
                session,
                QuestInstance.id == instance_id,
                QuestInstance.status == QuestStatus.COMPLETED.value,
                values={
                    "status": QuestStatus.CLAIMED.value,
                    "claimed_at": now,
                    "updated_at": now,
                },
            )

            if won != 1:
                self.log.info(
                    "Claim lost race; reward already credited by another request",
                    extra={"user_id": user_id, "quest_id": quest_id, "instance_id": instance_id},
                )
                raise ConcurrencyLostError("Quest", instance_id, "already claimed")

            wallet, wallet_created = await self._ledger.ensure_wallet(session, user_id)
            wallet_id, opening_balance = wallet.id, wallet.balance
            new_balance = await self._ledger.credit(
                user_id,
                reward,
                TransactionReason.QUEST_REWARD.value,
                {"quest_id": quest_id, "quest_instance_id": instance_id, "cycle_date": instance_cycle},
                session=session,
            )

        self.log.info(
            f"Quest reward claimed: {quest_id} +{reward} (balance {new_balance})",
            extra={
                "user_id": user_id,
                "quest_id": quest_id,
                "instance_id": instance_id,
                "reward": reward,
                "new_balance": new_balance,
            },
        )

        if wallet_created:
            await self._ledger.publish_wallet_created(user_id, wallet_id, opening_balance)

        await self.emit_event(
            "quest.reward_claimed",
            {
                "user_id": user_id,
                "quest_id": quest_id,
                "instance_id": instance_id,
                "reward": reward,
                "new_balance": new_balance,
            },
        )

        return ClaimResult(reward=reward, new_balance=new_balance)
