"""
Database Models Package
=======================

SQLAlchemy ORM models for Animochi, organized by domain.

- Schema only, no business logic
- `Mapped[]` syntax with `mapped_column()`
- Optimistic locking via a version column on wallets
- JSON (JSONB on PostgreSQL) for transaction metadata

Domain Organization:
--------------------
- economy: Wallets and their transaction ledger
- progression: Daily quest instances
- enums: Shared type-safe enumerations

Importing this package registers every table on `Base.metadata`.
"""

from animochi.core.database.base import Base

from .economy import Wallet, WalletTransaction
from .enums import QuestStatus, QuestType, TransactionKind, TransactionReason
from .progression import QuestInstance

__all__ = [
    "Base",
    # Economy
    "Wallet",
    "WalletTransaction",
    # Progression
    "QuestInstance",
    # Enums
    "QuestStatus",
    "QuestType",
    "TransactionKind",
    "TransactionReason",
]
