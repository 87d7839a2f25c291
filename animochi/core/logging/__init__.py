"""
Animochi Logging Infrastructure

Exports pipeline setup/teardown, logger access and the log context helpers.
"""

from animochi.core.logging.logger import (
    LogContext,
    get_log_context,
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "get_log_context",
]
