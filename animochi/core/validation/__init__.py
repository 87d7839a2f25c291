"""
Animochi Validation Package

This package provides:
- Input validation utilities (`InputValidator`) for amounts and identifiers
- Transaction metadata validation (`TransactionValidator`) for audit safety
"""

from animochi.core.validation.input_validator import InputValidator
from animochi.core.validation.transaction_validator import TransactionValidator

__all__ = [
    "InputValidator",
    "TransactionValidator",
]
