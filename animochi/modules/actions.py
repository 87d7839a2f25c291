"""
Quest & Wallet Actions
======================

Purpose
-------
The operations the presentation layer calls. Each action binds a log
context, runs the service call under the database retry policy and turns
expected business failures into an `ActionResult` instead of raising.

Error Mapping
-------------
- ValidationError, NotFoundError, InvalidStateError,
  InsufficientBalanceError -> ActionResult(success=False, error_code=...)
- ConcurrencyLostError on a claim -> "already claimed" result; the winning
  request has credited the reward
- SQLAlchemy errors -> logged with traceback, re-raised as DatabaseError

Authentication is out of scope: `user_id` is supplied by the caller.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError

from animochi.core.exceptions import DatabaseError
from animochi.core.logging.logger import LogContext
from animochi.database.models.enums import QuestStatus, TransactionReason
from animochi.modules.shared.exceptions import (
    AnimochiDomainException,
    ConcurrencyLostError,
    InvalidStateError,
)

if TYPE_CHECKING:
    from logging import Logger

    from animochi.core.database.retry_policy import DatabaseRetryPolicy
    from animochi.modules.quests.lifecycle_service import QuestLifecycleService
    from animochi.modules.rewards.claim_service import RewardClaimService
    from animochi.modules.wallet.ledger_service import WalletLedgerService

T = TypeVar("T")


@dataclass
class ActionResult:
    """Outcome of a facade action."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> "ActionResult":
        return cls(success=True, data=data or {}, message=message)

    @classmethod
    def fail(
        cls,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "ActionResult":
        return cls(success=False, error_code=error_code, message=message, details=details or {})

    @classmethod
    def from_exception(cls, exc: AnimochiDomainException) -> "ActionResult":
        return cls.fail(exc.error_code, exc.message, exc.details)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.data:
            payload["data"] = self.data
        if self.message:
            payload["message"] = self.message
        if not self.success:
            payload["error_code"] = self.error_code
            payload["details"] = self.details
        return payload


class QuestActions:
    """
    Facade over the quest, reward and wallet services.

    Example:
        >>> result = await actions.claim_quest_reward("user-1", "feed-creature-3")
        >>> result.data
        {'reward': 20, 'new_balance': 3020}
    """

    def __init__(
        self,
        quests: QuestLifecycleService,
        claims: RewardClaimService,
        ledger: WalletLedgerService,
        retry_policy: DatabaseRetryPolicy,
        reset_secret: str,
        logger: Logger,
    ) -> None:
        self._quests = quests
        self._claims = claims
        self._ledger = ledger
        self._retry = retry_policy
        self._reset_secret = reset_secret
        self.log = logger

    async def _call(
        self,
        operation_name: str,
        call: Callable[[], Awaitable[T]],
        **context: Any,
    ) -> T:
        """Run `call` under the retry policy; storage failures become DatabaseError."""
        try:
            return await self._retry.execute(call, operation_name=operation_name, context=context)
        except SQLAlchemyError as exc:
            self.log.error(
                f"Storage failure during {operation_name}",
                extra={"action_name": operation_name, "error_type": type(exc).__name__, **context},
                exc_info=True,
            )
            raise DatabaseError(operation_name, exc) from exc

    def _rejected(self, action: str, exc: AnimochiDomainException) -> ActionResult:
        self.log.info(
            f"{action} rejected: {exc.message}",
            extra={"action_name": action, "error_code": exc.error_code},
        )
        return ActionResult.from_exception(exc)

    # ========================================================================
    # QUESTS
    # ========================================================================

    async def get_daily_quests(self, user_id: str) -> List[Dict[str, Any]]:
        """Today's quests enriched with title, description and icon."""
        async with LogContext(user_id=user_id, action="get_daily_quests"):
            return await self._call(
                "quests.get_daily",
                lambda: self._quests.get_daily_quests(user_id),
            )

    async def update_quest_progress(
        self,
        user_id: str,
        quest_id: str,
        amount: int = 1,
        cycle_date: Optional[Union[date, str]] = None,
    ) -> ActionResult:
        async with LogContext(user_id=user_id, action="update_quest_progress"):
            try:
                outcome = await self._call(
                    "quests.update_progress",
                    lambda: self._quests.update_quest_progress(
                        user_id, quest_id, amount, cycle_date=cycle_date
                    ),
                    quest_id=quest_id,
                )
            except AnimochiDomainException as exc:
                return self._rejected("update_quest_progress", exc)

            return ActionResult.ok(outcome)

    async def track_quest_progress(self, user_id: str, quest_type: str, amount: int = 1) -> bool:
        """True if a quest was completed by this event; rejected input counts as False."""
        async with LogContext(user_id=user_id, action="track_quest_progress"):
            try:
                return await self._call(
                    "quests.track_progress",
                    lambda: self._quests.track_progress(user_id, quest_type, amount),
                    quest_type=str(quest_type),
                )
            except AnimochiDomainException as exc:
                self._rejected("track_quest_progress", exc)
                return False

    async def reset_user_daily_quests(self, user_id: str) -> ActionResult:
        async with LogContext(user_id=user_id, action="reset_user_daily_quests"):
            try:
                expired = await self._call(
                    "quests.reset_user",
                    lambda: self._quests.reset_daily_quests(user_id),
                )
            except AnimochiDomainException as exc:
                return self._rejected("reset_user_daily_quests", exc)

            return ActionResult.ok({"expired_count": expired})

    async def reset_all_daily_quests(self, secret: str) -> ActionResult:
        """Bulk reset for the scheduler; `secret` must match QUEST_RESET_SECRET."""
        async with LogContext(action="reset_all_daily_quests"):
            if not self._secret_matches(secret):
                self.log.warning("Bulk quest reset refused: bad secret")
                return ActionResult.fail("UNAUTHORIZED", "Invalid reset secret")

            expired = await self._call(
                "quests.reset_all",
                lambda: self._quests.reset_all_daily_quests(),
            )
            return ActionResult.ok({"expired_count": expired})

    def _secret_matches(self, secret: Any) -> bool:
        if not self._reset_secret or not isinstance(secret, str):
            return False
        return hmac.compare_digest(secret.encode("utf-8"), self._reset_secret.encode("utf-8"))

    async def claim_quest_reward(
        self,
        user_id: str,
        quest_id: str,
        cycle_date: Optional[Union[date, str]] = None,
    ) -> ActionResult:
        """Claim a completed quest; `cycle_date` picks a specific day's instance."""
        async with LogContext(user_id=user_id, action="claim_quest_reward"):
            try:
                result = await self._call(
                    "rewards.claim",
                    lambda: self._claims.claim(user_id, quest_id, cycle_date=cycle_date),
                    quest_id=quest_id,
                )
            except ConcurrencyLostError as exc:
                already = InvalidStateError("Quest", QuestStatus.CLAIMED.value, "already claimed")
                already.details["instance_id"] = exc.identifier
                return self._rejected("claim_quest_reward", already)
            except AnimochiDomainException as exc:
                return self._rejected("claim_quest_reward", exc)

            return ActionResult.ok(result.to_dict())

    # ========================================================================
    # WALLET
    # ========================================================================

    async def get_wallet(self, user_id: str) -> Dict[str, Any]:
        """The user's wallet, created with the welcome balance on first access."""
        async with LogContext(user_id=user_id, action="get_wallet"):
            return await self._call(
                "wallet.get",
                lambda: self._ledger.get_or_create_wallet(user_id),
            )

    async def get_transactions(
        self, user_id: str, limit: Optional[int] = None, skip: int = 0
    ) -> List[Dict[str, Any]]:
        async with LogContext(user_id=user_id, action="get_transactions"):
            return await self._call(
                "wallet.transactions",
                lambda: self._ledger.get_transactions(user_id, limit, skip),
            )

    async def add_funds(
        self,
        user_id: str,
        amount: int,
        reason: str = TransactionReason.MANUAL.value,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        async with LogContext(user_id=user_id, action="add_funds"):
            try:
                balance = await self._call(
                    "wallet.credit",
                    lambda: self._ledger.credit(user_id, amount, reason, metadata),
                )
            except AnimochiDomainException as exc:
                return self._rejected("add_funds", exc)

            return ActionResult.ok({"balance": balance})

    async def deduct_funds(
        self,
        user_id: str,
        amount: int,
        reason: str = TransactionReason.MANUAL.value,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        async with LogContext(user_id=user_id, action="deduct_funds"):
            try:
                balance = await self._call(
                    "wallet.debit",
                    lambda: self._ledger.debit(user_id, amount, reason, metadata),
                )
            except AnimochiDomainException as exc:
                return self._rejected("deduct_funds", exc)

            return ActionResult.ok({"balance": balance})
