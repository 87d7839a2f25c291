"""
Core infrastructure layer for Animochi.

Purpose
-------
Provide a single import surface for the infrastructure subsystems the quest
and wallet services are built on:

- Configuration management (Config, ConfigManager)
- Database subsystem (DatabaseService, retry policy)
- Logging (structured logging, logger factory)
- Infrastructure exceptions

Non-Responsibilities
--------------------
- Business logic (lives in `animochi.modules`)
- Any side effects beyond simple re-exports
"""

from __future__ import annotations

from animochi.core.config import Config, ConfigManager
from animochi.core.database import DatabaseRetryPolicy, DatabaseService
from animochi.core.exceptions import (
    AnimochiInfrastructureException,
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
)
from animochi.core.logging import get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    "DatabaseRetryPolicy",
    # Exceptions
    "AnimochiInfrastructureException",
    "ConfigurationError",
    "DatabaseError",
    "ErrorSeverity",
    # Logging
    "get_logger",
    "setup_logging",
]
