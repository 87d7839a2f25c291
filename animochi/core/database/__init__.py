"""
Database subsystem for Animochi.

Provides the async SQLAlchemy engine, session management, retry policy, and
the ORM base classes and mixins for model definitions.
"""

from animochi.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    utc_now,
)
from animochi.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from animochi.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    DatabaseSettings,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UTCDateTime",
    "utc_now",
    # Main service
    "DatabaseService",
    "DatabaseSettings",
    # Retry
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
