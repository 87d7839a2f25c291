"""
Wallet: a user's Animochi balance.
Schema only; mutated exclusively through WalletLedgerService.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from animochi.core.database.base import Base, IdMixin, TimestampMixin


class Wallet(Base, IdMixin, TimestampMixin):
    """
    One row per user.

    `version` is the mapper's version counter: every ORM flush of a wallet
    row is `UPDATE ... WHERE id = ? AND version = ?`, so a write based on a
    stale read fails instead of silently overwriting the balance.
    """

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )

    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Wallet id={self.id} owner={self.owner_id} balance={self.balance} v{self.version}>"
