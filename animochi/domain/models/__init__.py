"""
Domain models package for Animochi.

Domain models are separate from database models:
- Database models (animochi/database/models/): SQLAlchemy schemas
- Domain models (animochi/domain/models/): immutable objects with the rules

Services convert between the two as needed.
"""

from .base import (
    DomainValidationError,
    validate_non_negative,
    validate_positive,
)
from .quest import ProgressOutcome, QuestProgress

__all__ = [
    "DomainValidationError",
    "validate_positive",
    "validate_non_negative",
    "ProgressOutcome",
    "QuestProgress",
]
