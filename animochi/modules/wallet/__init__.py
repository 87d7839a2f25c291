"""
Wallet Module
=============

Business logic for Animochi balances and their transaction history.

Exports:
- WalletLedgerService: Atomic credit/debit, history and reconciliation
"""

from .ledger_service import LedgerEntry, WalletLedgerService

__all__ = ["LedgerEntry", "WalletLedgerService"]
