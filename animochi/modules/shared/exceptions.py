"""
Domain exceptions for Animochi.

Purpose
-------
Define the structured, domain-specific exception hierarchy for the quest and
wallet core. Services raise these for business rule violations; the action
facade translates them into typed results for the presentation layer.

Design Notes
------------
- All domain exceptions inherit from `AnimochiDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `ConcurrencyLostError` is the only retryable domain error: the caller lost
  a compare-and-swap and the winner's effect already stands.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from animochi.core.exceptions import ErrorSeverity


class AnimochiDomainException(Exception):
    """
    Base exception for all Animochi domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise AnimochiDomainException(
        ...     "Quest cannot be claimed",
        ...     {"status": "IN_PROGRESS"}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        """String representation for logging."""
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ValidationError(AnimochiDomainException):
    """
    Raised when an argument fails domain validation.

    Covers non-integer or non-positive amounts, unknown transaction reasons,
    unknown quest types and malformed identifiers.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(AnimochiDomainException):
    """
    Raised when a wallet or quest instance does not exist.

    Args:
        resource_type: Type of resource (e.g., "Wallet", "Quest")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InvalidStateError(AnimochiDomainException):
    """
    Raised when a status transition is not allowed from the current status.

    Claiming a quest that is not COMPLETED and progressing an EXPIRED quest
    both land here. `current_status` is carried in the details so callers can
    tell "not yet completed" from "already claimed" from "expired".

    Args:
        resource_type: Entity whose state blocked the action
        current_status: Status observed when the action was attempted
        reason: Explanation of why the transition is not allowed

    Example:
        >>> raise InvalidStateError("Quest", "CLAIMED", "already claimed")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, current_status: str, reason: str) -> None:
        self.resource_type = resource_type
        self.current_status = current_status
        self.reason = reason
        super().__init__(
            f"{resource_type} is {current_status}: {reason}",
            details={
                "resource_type": resource_type,
                "current_status": current_status,
                "reason": reason,
            },
            error_code=f"{resource_type.upper()}_{current_status.upper()}",
        )


class InsufficientBalanceError(AnimochiDomainException):
    """
    Raised when a debit would drive a wallet balance below zero.

    Args:
        required: Amount the debit asked for
        current: Balance at the time of the debit
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, required: int, current: int) -> None:
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient balance: need {required:,}, have {current:,}",
            details={
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code="INSUFFICIENT_BALANCE",
        )


class ConcurrencyLostError(AnimochiDomainException):
    """
    Raised when a caller loses a compare-and-swap race.

    For reward claims the winner has already credited the wallet, so callers
    treat this as "already happened" rather than as a failure.

    Args:
        resource_type: Entity the race was on
        identifier: Identifier of the contested row
        reason: What the winner did
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG
    DEFAULT_RETRYABLE = True

    def __init__(self, resource_type: str, identifier: Any, reason: str) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.reason = reason
        super().__init__(
            f"Lost concurrent update on {resource_type} {identifier}: {reason}",
            details={
                "resource_type": resource_type,
                "identifier": identifier,
                "reason": reason,
            },
            error_code="CONCURRENCY_LOST",
        )
