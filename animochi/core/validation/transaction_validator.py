"""
Wallet transaction metadata validation and size limiting.

Purpose
-------
Keep the audit metadata attached to wallet transactions safe, bounded in
size, and free of sensitive information. The ledger stores the bag verbatim
in an append-only table, so anything accepted here stays forever.

Features
--------
- Metadata must be a JSON-serializable mapping
- Size limit enforcement (4KB max per transaction's JSON payload)
- PII scrubbing for sensitive-looking keys, including nested structures
- Reserved keys (`old_balance`, `new_balance`) are owned by the ledger

Dependencies
------------
- animochi.modules.shared.exceptions.ValidationError
- animochi.core.logging.logger.get_logger
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, NoReturn, Optional, Set

from animochi.core.logging.logger import get_logger
from animochi.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Centralized helper to log and raise a ValidationError for transaction data."""
    logger.debug(
        "Transaction validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value)[:200],
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class TransactionValidator:
    """
    Validates wallet transaction metadata before it is persisted.

    This class is stateless; all methods are pure helpers.
    """

    MAX_METADATA_SIZE_BYTES: int = 4 * 1024

    # Written by the ledger itself on every transaction
    RESERVED_KEYS: Set[str] = {"old_balance", "new_balance"}

    PII_FIELDS: Set[str] = {
        "email",
        "ip_address",
        "password",
        "token",
        "api_key",
        "secret",
    }

    @staticmethod
    def validate_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Validate and sanitize a transaction metadata bag.

        Args:
            metadata: Caller-supplied audit fields, or None

        Returns:
            A sanitized copy (never the caller's object)

        Raises:
            ValidationError: If the bag is not a mapping, is not serializable,
                is too large, or uses a reserved key
        """
        if metadata is None:
            return {}

        if not isinstance(metadata, Mapping):
            _raise_validation_error("metadata", metadata, "Metadata must be a mapping")

        for key in metadata:
            if not isinstance(key, str):
                _raise_validation_error("metadata", key, "Metadata keys must be strings")

        reserved = TransactionValidator.RESERVED_KEYS & set(metadata)
        if reserved:
            _raise_validation_error(
                "metadata",
                sorted(reserved),
                f"Reserved metadata keys: {', '.join(sorted(reserved))}",
            )

        try:
            encoded = json.dumps(dict(metadata))
        except (TypeError, ValueError):
            _raise_validation_error("metadata", metadata, "Metadata must be JSON-serializable")

        size_bytes = len(encoded.encode("utf-8"))
        if size_bytes > TransactionValidator.MAX_METADATA_SIZE_BYTES:
            size_kb = size_bytes / 1024
            max_kb = TransactionValidator.MAX_METADATA_SIZE_BYTES / 1024
            _raise_validation_error(
                "metadata",
                f"{size_kb:.1f}KB",
                f"Metadata too large ({size_kb:.1f}KB exceeds {max_kb:.0f}KB limit)",
            )

        return TransactionValidator._scrub_pii(dict(metadata))

    @staticmethod
    def _scrub_pii(details: Mapping[str, Any]) -> Dict[str, Any]:
        """Redact PII-like fields, recursing into nested dicts and lists of dicts."""
        sanitized: Dict[str, Any] = {}

        for key, value in details.items():
            lower_key = key.lower()

            if any(pii_field in lower_key for pii_field in TransactionValidator.PII_FIELDS):
                sanitized[key] = "[REDACTED]"
                continue

            if isinstance(value, dict):
                sanitized[key] = TransactionValidator._scrub_pii(value)
            elif isinstance(value, list):
                sanitized_list: List[Any] = []
                for item in value:
                    if isinstance(item, dict):
                        sanitized_list.append(TransactionValidator._scrub_pii(item))
                    else:
                        sanitized_list.append(item)
                sanitized[key] = sanitized_list
            else:
                sanitized[key] = value

        return sanitized
