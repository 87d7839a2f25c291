"""
Base domain model classes for Animochi.

Purpose
-------
Foundational abstractions for domain models that hold business rules and
state transitions independently of persistence.

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Database schema (handled by SQLAlchemy models)
- Service orchestration (handled by service layer)
"""

from __future__ import annotations

from typing import Optional


class DomainValidationError(Exception):
    """Raised when a domain value object is constructed in an invalid state."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )
