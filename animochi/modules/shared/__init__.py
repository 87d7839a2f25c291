"""
Animochi Shared Module

Purpose
-------
Domain-level foundations for the quest, wallet and reward modules:
- Domain exceptions
- Base service and repository patterns

Usage
-----
    from animochi.modules.shared import (
        BaseRepository,
        BaseService,
        InsufficientBalanceError,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    AnimochiDomainException,
    ConcurrencyLostError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "AnimochiDomainException",
    "ConcurrencyLostError",
    "InsufficientBalanceError",
    "InvalidStateError",
    "NotFoundError",
    "ValidationError",
]
