"""
Economy domain ORM models.

Exports:
- Wallet
- WalletTransaction
"""

from .wallet import Wallet
from .wallet_transaction import WalletTransaction

__all__ = ["Wallet", "WalletTransaction"]
