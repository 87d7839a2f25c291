"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the quest, wallet and reward services.
Services implement business logic, own their transactions through an
injected DatabaseService, enforce business rules, and emit domain events
after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers (listener failures never reach the caller)
- Common error logging

What this class does NOT do:
- Open database transactions itself
- Contain quest or wallet logic

Usage
-----
    class WalletLedgerService(BaseService):
        def __init__(self, database, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self.db = database
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from animochi.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from animochi.core.config.manager import ConfigManager
    from animochi.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Balance configuration
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_int_config(self, key: str, default: int, min_value: int = 0) -> int:
        """Integer config value; anything else is a configuration error."""
        value = self.get_config(key, default)
        if isinstance(value, bool) or not isinstance(value, int) or value < min_value:
            raise ConfigurationError(
                key, f"Expected an integer >= {min_value}, got {value!r}"
            )
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event for cross-module communication.

        Call only after the transaction that produced the event committed.
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"service_operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "service_operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=True,
        )
