"""
WalletTransaction: append-only ledger entry.
Pure schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from animochi.core.database.base import Base, BigIntPK, IdMixin, JSONType, UTCDateTime, utc_now


class WalletTransaction(Base, IdMixin):
    """
    One balance change.

    `amount` is signed: positive for CREDIT, negative for DEBIT. Rows are
    never updated or deleted.
    """

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="amount_non_zero"),
        CheckConstraint(
            "(kind = 'CREDIT' AND amount > 0) OR (kind = 'DEBIT' AND amount < 0)",
            name="amount_sign_matches_kind",
        ),
        Index("ix_wallet_transactions_wallet_created", "wallet_id", "created_at"),
        Index("ix_wallet_transactions_reason", "reason"),
    )

    wallet_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("wallets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)

    # "metadata" is reserved on declarative classes
    meta: Mapped[Dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return (
            f"<WalletTransaction id={self.id} wallet={self.wallet_id} "
            f"{self.kind} {self.amount:+d} {self.reason}>"
        )
