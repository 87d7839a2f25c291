"""
Wallet Ledger Service
=====================

Purpose
-------
Owns every user's Animochi balance and its append-only transaction history.
Every balance change is a single atomic unit: the wallet row is locked, the
balance is updated under the optimistic version check, and the matching
WalletTransaction row is appended in the same transaction.

Domain
------
- Lazy wallet creation with the welcome balance
- Credit / debit with amount, reason and metadata validation
- Newest-first transaction history
- Ledger reconciliation (balance == welcome + sum(amounts))

Design Notes
------------
- `credit()` / `debit()` accept an optional caller session so another service
  (reward claims) can make the credit part of its own atomic unit. In that
  case the caller owns the commit and the `wallet.*` event is not emitted;
  the caller publishes its own event after commit.
- Concurrent creation of the same wallet is resolved by the unique
  `owner_id` constraint inside a savepoint: the loser re-reads the winner's
  row.
- The welcome balance is not itself a transaction.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from animochi.core.logging.logger import get_logger
from animochi.core.validation.input_validator import InputValidator
from animochi.core.validation.transaction_validator import TransactionValidator
from animochi.database.models.economy import Wallet, WalletTransaction
from animochi.database.models.enums import TransactionKind, TransactionReason
from animochi.modules.shared.base_repository import BaseRepository
from animochi.modules.shared.base_service import BaseService
from animochi.modules.shared.exceptions import (
    ConcurrencyLostError,
    InsufficientBalanceError,
    NotFoundError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from animochi.core.config.manager import ConfigManager
    from animochi.core.database.service import DatabaseService
    from animochi.core.event.bus import EventBus


MAX_TRANSACTIONS_PAGE = 500


# ============================================================================
# Repositories
# ============================================================================


class WalletRepository(BaseRepository[Wallet]):
    """Repository for Wallet model."""

    async def find_by_owner(
        self, session: AsyncSession, owner_id: str, for_update: bool = False
    ) -> Optional[Wallet]:
        return await self.find_one_where(
            session, Wallet.owner_id == owner_id, for_update=for_update
        )


class WalletTransactionRepository(BaseRepository[WalletTransaction]):
    """Repository for WalletTransaction model (append-only)."""

    async def list_for_wallet(
        self, session: AsyncSession, wallet_id: int, limit: int, offset: int = 0
    ) -> List[WalletTransaction]:
        return await self.find_many_where(
            session,
            WalletTransaction.wallet_id == wallet_id,
            order_by=[WalletTransaction.created_at.desc(), WalletTransaction.id.desc()],
            limit=limit,
            offset=offset,
        )

    async def sum_for_wallet(self, session: AsyncSession, wallet_id: int) -> int:
        stmt = select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
            WalletTransaction.wallet_id == wallet_id
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())


# ============================================================================
# Value objects
# ============================================================================


@dataclass(frozen=True)
class LedgerEntry:
    """What one credit or debit did."""

    user_id: str
    wallet_id: int
    transaction_id: int
    kind: str
    amount: int
    reason: str
    old_balance: int
    new_balance: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# WalletLedgerService
# ============================================================================


class WalletLedgerService(BaseService):
    """
    Atomic credit/debit over per-user wallets.

    Public Methods
    --------------
    - get_or_create_wallet() -> Wallet snapshot, created on first access
    - get_balance() -> Current balance (creates the wallet if needed)
    - credit() -> Add funds, returns new balance
    - debit() -> Remove funds, returns new balance
    - get_transactions() -> Newest-first history page
    - verify_ledger() -> Reconciliation report
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._db = database

        self._wallets = WalletRepository(
            model_class=Wallet,
            logger=get_logger(f"{__name__}.WalletRepository"),
        )
        self._transactions = WalletTransactionRepository(
            model_class=WalletTransaction,
            logger=get_logger(f"{__name__}.WalletTransactionRepository"),
        )

    # ========================================================================
    # CONFIG
    # ========================================================================

    @property
    def welcome_balance(self) -> int:
        return self.get_int_config("economy.welcome_balance", 3000, min_value=0)

    @property
    def max_transaction_amount(self) -> int:
        return self.get_int_config("economy.max_transaction_amount", 10000, min_value=1)

    # ========================================================================
    # PUBLIC API - Wallets
    # ========================================================================

    async def get_or_create_wallet(self, user_id: str) -> Dict[str, Any]:
        """
        Return the user's wallet, creating it with the welcome balance if missing.

        Returns:
            Dict with id, owner_id, balance, version, created_at, updated_at
        """
        user_id = InputValidator.validate_identifier(user_id)

        self.log_operation("get_or_create_wallet", user_id=user_id)

        async with self._db.get_transaction() as session:
            wallet, created = await self.ensure_wallet(session, user_id)
            snapshot = self._serialize_wallet(wallet)

        if created:
            await self.publish_wallet_created(user_id, snapshot["id"], snapshot["balance"])

        return snapshot

    async def publish_wallet_created(self, user_id: str, wallet_id: int, balance: int) -> None:
        """Announce a new wallet; call only after the creating transaction committed."""
        await self.emit_event(
            "wallet.created",
            {"user_id": user_id, "wallet_id": wallet_id, "balance": balance},
        )

    async def get_balance(self, user_id: str) -> int:
        wallet = await self.get_or_create_wallet(user_id)
        return wallet["balance"]

    async def ensure_wallet(self, session: AsyncSession, user_id: str) -> Tuple[Wallet, bool]:
        """
        Get or create the wallet inside the caller's transaction.

        Returns:
            (wallet, created)
        """
        wallet = await self._wallets.find_by_owner(session, user_id)
        if wallet is not None:
            return wallet, False

        wallet = Wallet(owner_id=user_id, balance=self.welcome_balance)

        try:
            async with session.begin_nested():
                self._wallets.add(session, wallet)
                await self._wallets.flush(session)
        except IntegrityError:
            # Another request created it between our read and insert
            existing = await self._wallets.find_by_owner(session, user_id)
            if existing is None:
                raise
            self.log.info(
                "Wallet creation raced; using existing wallet",
                extra={"user_id": user_id, "wallet_id": existing.id},
            )
            return existing, False

        self.log.info(
            f"Wallet created for {user_id} with welcome balance {wallet.balance}",
            extra={"user_id": user_id, "wallet_id": wallet.id, "balance": wallet.balance},
        )
        return wallet, True

    # ========================================================================
    # PUBLIC API - Balance changes
    # ========================================================================

    async def credit(
        self,
        user_id: str,
        amount: int,
        reason: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """
        Add `amount` to the user's wallet and append a CREDIT transaction.

        Args:
            user_id: Wallet owner
            amount: Positive integer, at most `economy.max_transaction_amount`
            reason: One of TransactionReason
            metadata: Optional audit fields
            session: Join the caller's transaction instead of opening one

        Returns:
            New balance

        Raises:
            ValidationError: Bad amount, reason or metadata
            NotFoundError: The user has no wallet
            ConcurrencyLostError: The wallet row changed under us
        """
        return await self._change_balance(
            TransactionKind.CREDIT, user_id, amount, reason, metadata, session
        )

    async def debit(
        self,
        user_id: str,
        amount: int,
        reason: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """
        Remove `amount` from the user's wallet and append a DEBIT transaction
        stored as `-amount`.

        Raises:
            InsufficientBalanceError: balance < amount; nothing is written
            (plus everything `credit()` raises)
        """
        return await self._change_balance(
            TransactionKind.DEBIT, user_id, amount, reason, metadata, session
        )

    async def _change_balance(
        self,
        kind: TransactionKind,
        user_id: str,
        amount: int,
        reason: str,
        metadata: Optional[Mapping[str, Any]],
        session: Optional[AsyncSession],
    ) -> int:
        user_id = InputValidator.validate_identifier(user_id)
        amount = InputValidator.validate_positive_integer(
            amount, field_name="amount", max_value=self.max_transaction_amount
        )
        reason = InputValidator.validate_choice(
            reason, field_name="reason", valid_choices=TransactionReason.values()
        )
        audit = TransactionValidator.validate_metadata(metadata)

        operation = kind.value.lower()
        self.log_operation(operation, user_id=user_id, amount=amount, reason=reason)

        if session is not None:
            entry = await self._apply(session, kind, user_id, amount, reason, audit)
            return entry.new_balance

        async with self._db.get_transaction() as own_session:
            entry = await self._apply(own_session, kind, user_id, amount, reason, audit)

        await self.emit_event(f"wallet.{operation}ed", entry.to_dict())
        return entry.new_balance

    async def _apply(
        self,
        session: AsyncSession,
        kind: TransactionKind,
        user_id: str,
        amount: int,
        reason: str,
        audit: Dict[str, Any],
    ) -> LedgerEntry:
        wallet = await self._wallets.find_by_owner(session, user_id, for_update=True)
        if wallet is None:
            raise NotFoundError("Wallet", user_id)

        old_balance = wallet.balance

        if kind is TransactionKind.DEBIT and old_balance < amount:
            self.log.info(
                "Debit rejected: insufficient balance",
                extra={"user_id": user_id, "required": amount, "balance": old_balance},
            )
            raise InsufficientBalanceError(required=amount, current=old_balance)

        signed_amount = amount if kind is TransactionKind.CREDIT else -amount
        new_balance = old_balance + signed_amount

        wallet.balance = new_balance
        transaction = self._transactions.add(
            session,
            WalletTransaction(
                wallet_id=wallet.id,
                amount=signed_amount,
                kind=kind.value,
                reason=reason,
                meta={**audit, "old_balance": old_balance, "new_balance": new_balance},
            ),
        )

        try:
            await self._transactions.flush(session)
        except StaleDataError as exc:
            raise ConcurrencyLostError(
                "Wallet", wallet.id, "balance was changed by a concurrent write"
            ) from exc

        self.log.info(
            f"Wallet {kind.value}: {user_id} {signed_amount:+d} ({old_balance} -> {new_balance})",
            extra={
                "user_id": user_id,
                "wallet_id": wallet.id,
                "transaction_id": transaction.id,
                "kind": kind.value,
                "amount": signed_amount,
                "reason": reason,
                "old_balance": old_balance,
                "new_balance": new_balance,
            },
        )

        return LedgerEntry(
            user_id=user_id,
            wallet_id=wallet.id,
            transaction_id=transaction.id,
            kind=kind.value,
            amount=signed_amount,
            reason=reason,
            old_balance=old_balance,
            new_balance=new_balance,
        )

    # ========================================================================
    # PUBLIC API - History & reconciliation
    # ========================================================================

    async def get_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Newest-first page of the user's transactions.

        A user without a wallet has no history; this does not create one.
        """
        user_id = InputValidator.validate_identifier(user_id)
        if limit is None:
            limit = self.get_int_config("economy.transactions_page_size", 50, min_value=1)
        limit = InputValidator.validate_positive_integer(
            limit, field_name="limit", max_value=MAX_TRANSACTIONS_PAGE
        )
        skip = InputValidator.validate_non_negative_integer(skip, field_name="skip")

        async with self._db.get_session() as session:
            wallet = await self._wallets.find_by_owner(session, user_id)
            if wallet is None:
                return []

            rows = await self._transactions.list_for_wallet(session, wallet.id, limit, skip)
            return [self._serialize_transaction(row) for row in rows]

    async def verify_ledger(self, user_id: str) -> Dict[str, Any]:
        """
        Check that balance == welcome balance + sum of transaction amounts.

        The welcome balance used is the current configured one; changing it
        after wallets exist makes older wallets report as inconsistent.
        """
        user_id = InputValidator.validate_identifier(user_id)

        async with self._db.get_session() as session:
            wallet = await self._wallets.find_by_owner(session, user_id)
            if wallet is None:
                raise NotFoundError("Wallet", user_id)

            total = await self._transactions.sum_for_wallet(session, wallet.id)
            count = await self._transactions.count(
                session, WalletTransaction.wallet_id == wallet.id
            )

            expected = self.welcome_balance + total
            report = {
                "user_id": user_id,
                "wallet_id": wallet.id,
                "expected_balance": expected,
                "actual_balance": wallet.balance,
                "transaction_count": count,
                "consistent": expected == wallet.balance,
            }

        if not report["consistent"]:
            self.log.error("Ledger mismatch detected", extra=report)

        return report

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    @staticmethod
    def _serialize_wallet(wallet: Wallet) -> Dict[str, Any]:
        return {
            "id": wallet.id,
            "owner_id": wallet.owner_id,
            "balance": wallet.balance,
            "version": wallet.version,
            "created_at": wallet.created_at,
            "updated_at": wallet.updated_at,
        }

    @staticmethod
    def _serialize_transaction(row: WalletTransaction) -> Dict[str, Any]:
        return {
            "id": row.id,
            "wallet_id": row.wallet_id,
            "amount": row.amount,
            "kind": row.kind,
            "reason": row.reason,
            "metadata": dict(row.meta or {}),
            "created_at": row.created_at,
        }
