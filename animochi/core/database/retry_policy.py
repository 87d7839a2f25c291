"""
Database retry policy for transient failures.

Purpose
-------
Execute a complete unit of database work again when it fails with a
transient error (lost connection, `database is locked`, serialization
failure). Implements exponential backoff with jitter.

Transaction Ownership
---------------------
The retried operation must open its own transaction. Never wrap work that
runs inside an existing transaction:

```python
async def operation():
    async with db.get_transaction() as session:
        ...

await retry_policy.execute(operation, operation_name="wallet.credit")
```

Retrying is only safe for operations whose effect is gated on state that a
previous successful attempt would have changed. Reward claims are gated by a
status compare-and-swap and wallet mutations by a row lock plus version
check, so a retry after an ambiguous failure never double-applies.

Configuration
-------------
- DATABASE_RETRY_MAX_ATTEMPTS (default: 3)
- DATABASE_RETRY_INITIAL_BACKOFF_MS (default: 50)
- DATABASE_RETRY_MAX_BACKOFF_MS (default: 1000)
- DATABASE_RETRY_JITTER_MS (default: 25)
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

from animochi.core.config.config import Config
from animochi.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for database retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including initial attempt).
    initial_backoff_ms : int
        Initial backoff duration in milliseconds.
    max_backoff_ms : int
        Maximum backoff duration in milliseconds.
    jitter_ms : int
        Maximum random jitter to add to backoff in milliseconds.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable. IntegrityError is deliberately
        absent: constraint violations are answers, not transient faults.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (OperationalError,)

    @classmethod
    def from_config(cls) -> DatabaseRetryConfig:
        """Build retry configuration from Config."""
        return cls(
            max_attempts=Config.DATABASE_RETRY_MAX_ATTEMPTS,
            initial_backoff_ms=Config.DATABASE_RETRY_INITIAL_BACKOFF_MS,
            max_backoff_ms=Config.DATABASE_RETRY_MAX_BACKOFF_MS,
            jitter_ms=Config.DATABASE_RETRY_JITTER_MS,
        )


# ============================================================================
# Retry Policy
# ============================================================================


class DatabaseRetryPolicy:
    """
    Execute async database operations with retry semantics.

    Usage
    -----
    >>> retry_policy = DatabaseRetryPolicy.from_config()
    >>> result = await retry_policy.execute(
    ...     lambda: claims.claim(user_id, quest_id),
    ...     operation_name="rewards.claim",
    ... )
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> DatabaseRetryPolicy:
        return cls(DatabaseRetryConfig.from_config())

    @property
    def config(self) -> DatabaseRetryConfig:
        return self._config

    def _is_retriable(self, exc: BaseException) -> bool:
        return isinstance(exc, self._config.retriable_exceptions)

    def _compute_backoff_ms(self, attempt: int) -> int:
        """
        Compute backoff duration for given attempt with jitter.

        Exponential backoff `initial * 2^(attempt-1)`, capped at
        `max_backoff_ms`, plus up to `jitter_ms` of random jitter.
        """
        exponent = max(attempt - 1, 0)
        base = self._config.initial_backoff_ms * (2**exponent)
        capped = min(base, self._config.max_backoff_ms)

        jitter = (
            random.randint(0, self._config.jitter_ms)
            if self._config.jitter_ms > 0
            else 0
        )

        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Execute async operation with retry logic for transient failures.

        Parameters
        ----------
        operation : Callable[[], Awaitable[T]]
            Zero-argument async callable performing database work.
        operation_name : str
            Stable identifier for logging (e.g., "wallet.credit").
        context : Optional[dict[str, Any]]
            Additional structured context for logs.

        Raises
        ------
        BaseException
            The last exception when retries are exhausted, or the first
            non-retriable exception.
        """
        ctx_extra = context.copy() if context else {}
        ctx_extra["db_operation"] = operation_name

        attempt = 0

        while True:
            attempt += 1

            try:
                return await operation()

            except Exception as exc:
                retriable = self._is_retriable(exc)
                if not retriable:
                    raise

                error_type = type(exc).__name__
                will_retry = attempt < self._config.max_attempts

                logger.warning(
                    "Database operation failed",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "will_retry": will_retry,
                    },
                    exc_info=True,
                )

                if not will_retry:
                    logger.error(
                        "Database operation retries exhausted",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise

                backoff_ms = self._compute_backoff_ms(attempt)
                logger.debug(
                    "Backing off before retry",
                    extra={**ctx_extra, "attempt": attempt, "backoff_ms": backoff_ms},
                )
                await asyncio.sleep(backoff_ms / 1000.0)
