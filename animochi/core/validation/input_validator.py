"""
Input Validation Layer for Animochi

Purpose
-------
Provide a centralized validation layer for every argument that enters the
quest and wallet core. Enforces type safety, bounds checking, and format
validation before anything touches the database.

Responsibilities
----------------
- Validate integer amounts (strictly: booleans, floats and numeric strings
  are rejected, so `credit(user, 1.5)` never becomes a silent `1`)
- Validate user identifiers and quest identifiers
- Validate quest days given as dates or ISO strings
- Validate choice inputs (transaction reasons, quest types) against the
  allowed vocabulary
- Raise ValidationError with clear error messages

Non-Responsibilities
--------------------
- Business rule validation such as sufficient balance (service layer)
- Database constraints and persistence (database layer)
- Authentication of the user identifier (presentation layer)

Observability
-------------
Every validation failure is logged at debug level with the field name, the
raw value (repr) and the reason.

Dependencies
------------
- animochi.modules.shared.exceptions.ValidationError
- animochi.core.logging.logger.get_logger
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, NoReturn, Optional, Sequence

from animochi.core.logging.logger import get_logger
from animochi.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

MAX_IDENTIFIER_LENGTH = 128


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """
    Centralized helper to log and raise a ValidationError.

    All validation failures go through this function to ensure consistent,
    structured logging and error construction.
    """
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Centralized input validation for the quest and wallet core.

    All validation methods:
    - Are stateless and deterministic
    - Return validated values on success
    - Raise ValidationError on failure (never silently fail)
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate that value is an ``int`` within optional bounds.

        Args:
            value: Input value to validate
            field_name: Name of field for error messages/logging
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)

        Returns:
            The validated integer

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        # bool is a subclass of int
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got {type(value).__name__}",
            )

        if min_value is not None and value < min_value:
            _raise_validation_error(
                field_name,
                value,
                f"Must be at least {min_value}, got {value}",
            )

        if max_value is not None and value > max_value:
            _raise_validation_error(
                field_name,
                value,
                f"Cannot exceed {max_value}, got {value}",
            )

        return value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        """Validate that value is a strictly positive integer (>= 1)."""
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        """Validate that value is a non-negative integer (>= 0)."""
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=0,
            max_value=max_value,
        )

    # =========================================================================
    # IDENTIFIER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_identifier(value: Any, field_name: str = "user_id") -> str:
        """
        Validate an opaque identifier such as a user id or a quest id.

        Identifiers are non-empty strings without surrounding whitespace and
        at most MAX_IDENTIFIER_LENGTH characters long.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a string, got {type(value).__name__}",
            )

        str_value = value.strip()
        if not str_value:
            _raise_validation_error(field_name, value, "Cannot be empty")

        if len(str_value) > MAX_IDENTIFIER_LENGTH:
            _raise_validation_error(
                field_name,
                value,
                f"Cannot exceed {MAX_IDENTIFIER_LENGTH} characters",
            )

        return str_value

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Sequence[str],
    ) -> str:
        """
        Validate that value is one of the allowed choices (case-insensitive).

        Returns:
            The matching entry from ``valid_choices`` in its canonical spelling

        Raises:
            ValidationError: If choice is invalid
        """
        str_value = str(getattr(value, "value", value)).strip().lower()

        for choice in valid_choices:
            if choice.lower() == str_value:
                return choice

        choices_str = ", ".join(sorted(valid_choices))
        _raise_validation_error(
            field_name,
            value,
            f"Invalid choice '{value}'. Must be one of: {choices_str}",
        )

    # =========================================================================
    # DATE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_cycle_date(value: Any, field_name: str = "cycle_date") -> date:
        """
        Validate a quest day given as a `date` or an ISO `YYYY-MM-DD` string.

        Datetimes are rejected: a quest day is a calendar date in the quest
        timezone, and truncating a UTC timestamp could name the wrong day.
        """
        if isinstance(value, datetime):
            _raise_validation_error(field_name, value, "Must be a date, not a datetime")

        if isinstance(value, date):
            return value

        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                _raise_validation_error(field_name, value, "Must be an ISO date (YYYY-MM-DD)")

        _raise_validation_error(
            field_name,
            value,
            f"Must be a date, got {type(value).__name__}",
        )
