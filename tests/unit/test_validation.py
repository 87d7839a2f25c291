"""
Unit Tests for Input and Transaction Validation
===============================================

Test Coverage
-------------
- Integer, identifier, choice and quest-day validation
- Transaction metadata rules (reserved keys, size cap, PII scrubbing)
- Error codes and details carried by ValidationError
"""

from datetime import date, datetime

import pytest

from animochi.core.validation import InputValidator, TransactionValidator
from animochi.database.models.enums import QuestType, TransactionReason
from animochi.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestIntegerValidation:
    """Test amount-style integer validation."""

    def test_positive_integer_passes_through(self):
        assert InputValidator.validate_positive_integer(50, "amount") == 50

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_is_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_positive_integer(value, "amount")

        assert exc_info.value.error_code == "VALIDATION_AMOUNT"
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("value", [1.5, "10", None, True])
    def test_non_integer_is_rejected(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(value, "amount")

    def test_max_value_is_inclusive(self):
        assert InputValidator.validate_positive_integer(10000, "amount", max_value=10000) == 10000

        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(10001, "amount", max_value=10000)

    def test_non_negative_accepts_zero(self):
        assert InputValidator.validate_non_negative_integer(0, "skip") == 0


@pytest.mark.unit
class TestIdentifierValidation:
    """Test user and quest identifier validation."""

    def test_identifier_is_stripped(self):
        assert InputValidator.validate_identifier("  user-1 ") == "user-1"

    @pytest.mark.parametrize("value", ["", "   ", None, 42])
    def test_bad_identifier_is_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_identifier(value)

        assert exc_info.value.error_code == "VALIDATION_USER_ID"

    def test_identifier_length_is_capped(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_identifier("x" * 500, field_name="quest_id")


@pytest.mark.unit
class TestChoiceValidation:
    """Test enum-backed choice validation."""

    def test_returns_canonical_spelling(self):
        result = InputValidator.validate_choice(
            "Feed-Creature", "quest_type", QuestType.values()
        )

        assert result == "feed-creature"

    def test_accepts_enum_members(self):
        result = InputValidator.validate_choice(
            TransactionReason.QUEST_REWARD, "reason", TransactionReason.values()
        )

        assert result == "quest-reward"

    def test_unknown_choice_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_choice("lottery", "reason", TransactionReason.values())

        assert exc_info.value.error_code == "VALIDATION_REASON"
        assert "lottery" in exc_info.value.validation_message


@pytest.mark.unit
class TestCycleDateValidation:
    """Test quest-day validation."""

    def test_iso_string_is_parsed(self):
        assert InputValidator.validate_cycle_date(" 2025-03-14 ") == date(2025, 3, 14)

    def test_date_passes_through(self):
        assert InputValidator.validate_cycle_date(date(2025, 3, 14)) == date(2025, 3, 14)

    @pytest.mark.parametrize("value", ["14/03/2025", "", datetime(2025, 3, 14, 9, 0), 20250314])
    def test_bad_cycle_date_is_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_cycle_date(value)

        assert exc_info.value.error_code == "VALIDATION_CYCLE_DATE"


@pytest.mark.unit
class TestMetadataValidation:
    """Test transaction metadata sanitation."""

    def test_none_becomes_empty_dict(self):
        assert TransactionValidator.validate_metadata(None) == {}

    def test_returns_a_copy(self):
        metadata = {"quest_id": "feed-creature-3"}

        result = TransactionValidator.validate_metadata(metadata)

        assert result == metadata
        assert result is not metadata

    @pytest.mark.parametrize("key", ["old_balance", "new_balance"])
    def test_reserved_keys_are_rejected(self, key):
        with pytest.raises(ValidationError):
            TransactionValidator.validate_metadata({key: 1})

    def test_non_mapping_is_rejected(self):
        with pytest.raises(ValidationError):
            TransactionValidator.validate_metadata(["quest_id"])

    def test_non_serializable_is_rejected(self):
        with pytest.raises(ValidationError):
            TransactionValidator.validate_metadata({"when": object()})

    def test_oversized_metadata_is_rejected(self):
        with pytest.raises(ValidationError):
            TransactionValidator.validate_metadata({"blob": "x" * 5000})

    def test_pii_is_redacted_recursively(self):
        result = TransactionValidator.validate_metadata(
            {
                "email": "someone@example.com",
                "order": {"api_key": "abc", "item": "hat"},
                "history": [{"password": "hunter2"}, "plain"],
            }
        )

        assert result["email"] == "[REDACTED]"
        assert result["order"] == {"api_key": "[REDACTED]", "item": "hat"}
        assert result["history"] == [{"password": "[REDACTED]"}, "plain"]
