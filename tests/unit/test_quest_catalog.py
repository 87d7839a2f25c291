"""
Unit Tests for the Quest Catalog
================================

Test Coverage
-------------
- Template parsing from balance configuration
- Catalog construction rules (non-empty, unique ids)
- Template resolution used for display enrichment
- Weighted selection without replacement
- The shipped config/quests.yaml catalog
"""

import random
from collections import Counter

import pytest

from animochi.core.config.config import Config
from animochi.core.config.manager import ConfigManager
from animochi.core.exceptions import ConfigurationError
from animochi.database.models.enums import QuestType
from animochi.modules.quests.catalog import (
    DEFAULT_ICON,
    DEFAULT_TITLE,
    QuestCatalog,
    QuestTemplate,
    find_template,
)


def _template(template_id, quest_type, target_count, reward=10, weight=1):
    return QuestTemplate(
        id=template_id,
        type=QuestType(quest_type),
        title=template_id.title(),
        description=f"Do {template_id}",
        icon="*",
        target_count=target_count,
        reward=reward,
        weight=weight,
    )


TEMPLATES = (
    _template("feed-creature-1", "feed-creature", 1),
    _template("feed-creature-3", "feed-creature", 3, reward=20),
    _template("customize-2", "customize", 2),
)


# ============================================================================
# TEMPLATE PARSING
# ============================================================================


@pytest.mark.unit
class TestQuestTemplateFromMapping:
    """Test building templates from YAML entries."""

    def test_full_entry(self):
        template = QuestTemplate.from_mapping(
            {
                "id": "feed-creature-3",
                "type": "feed-creature",
                "title": "Nourrir",
                "description": "Nourris 3 fois",
                "icon": "🍖",
                "target_count": 3,
                "reward": 20,
                "weight": 4,
            }
        )

        assert template.type is QuestType.FEED_CREATURE
        assert template.target_count == 3
        assert template.reward == 20
        assert template.weight == 4

    def test_missing_display_fields_use_placeholders(self):
        template = QuestTemplate.from_mapping(
            {"id": "customize-1", "type": "customize", "target_count": 1, "reward": 5}
        )

        assert template.title == DEFAULT_TITLE
        assert template.icon == DEFAULT_ICON
        assert template.weight == 1

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ConfigurationError):
            QuestTemplate.from_mapping(
                {"id": "x", "type": "dance", "target_count": 1, "reward": 5}
            )

    @pytest.mark.parametrize(
        "field_name, value",
        [("target_count", 0), ("reward", -5), ("weight", 0), ("reward", "50"), ("target_count", True)],
    )
    def test_bad_numbers_are_rejected(self, field_name, value):
        raw = {"id": "x", "type": "customize", "target_count": 1, "reward": 5}
        raw[field_name] = value

        with pytest.raises(ConfigurationError):
            QuestTemplate.from_mapping(raw)

    def test_missing_id_is_rejected(self):
        with pytest.raises(ConfigurationError):
            QuestTemplate.from_mapping({"type": "customize", "target_count": 1, "reward": 5})


# ============================================================================
# CATALOG RULES
# ============================================================================


@pytest.mark.unit
class TestQuestCatalog:
    """Test catalog construction and lookups."""

    def test_empty_catalog_is_rejected(self):
        with pytest.raises(ConfigurationError):
            QuestCatalog([])

    def test_duplicate_ids_are_rejected(self):
        with pytest.raises(ConfigurationError):
            QuestCatalog([TEMPLATES[0], TEMPLATES[0]])

    def test_lookup_by_id(self):
        catalog = QuestCatalog(TEMPLATES)

        assert len(catalog) == 3
        assert "customize-2" in catalog
        assert catalog.get("customize-2") is TEMPLATES[2]
        assert catalog.get("missing") is None

    def test_from_config(self, config_manager):
        catalog = QuestCatalog.from_config(config_manager)

        assert {template.id for template in catalog} == {
            "feed-creature-3",
            "customize-1",
            "interact-with-multiple-2",
        }

    def test_from_config_rejects_non_list(self):
        manager = ConfigManager.from_dict({"quests": {"templates": {"id": "x"}}})

        with pytest.raises(ConfigurationError):
            QuestCatalog.from_config(manager)

    def test_reward_above_transaction_limit_is_rejected(self):
        manager = ConfigManager.from_dict(
            {
                "economy": {"max_transaction_amount": 10000},
                "quests": {
                    "templates": [
                        {"id": "jackpot", "type": "feed-creature", "target_count": 1, "reward": 20000}
                    ]
                },
            }
        )

        with pytest.raises(ConfigurationError) as exc_info:
            QuestCatalog.from_config(manager)

        assert exc_info.value.config_key == "quests.templates[jackpot]"

    def test_reward_equal_to_transaction_limit_is_accepted(self):
        manager = ConfigManager.from_dict(
            {
                "economy": {"max_transaction_amount": 500},
                "quests": {
                    "templates": [
                        {"id": "big", "type": "customize", "target_count": 1, "reward": 500}
                    ]
                },
            }
        )

        assert QuestCatalog.from_config(manager).get("big").reward == 500

    def test_constructor_enforces_max_reward(self):
        with pytest.raises(ConfigurationError):
            QuestCatalog(TEMPLATES, max_reward=15)

    def test_shipped_catalog_loads(self):
        manager = ConfigManager(config_dir=Config.CONFIG_DIR)
        manager.initialize()

        catalog = QuestCatalog.from_config(manager)

        assert len(catalog) >= manager.get("quests.daily_count")
        assert {template.type for template in catalog} == set(QuestType)


# ============================================================================
# TEMPLATE RESOLUTION
# ============================================================================


@pytest.mark.unit
class TestFindTemplate:
    """Test how an instance is matched back to its template."""

    def test_exact_id(self):
        assert find_template(TEMPLATES, "feed-creature-3") is TEMPLATES[1]

    def test_exact_id_with_matching_target(self):
        assert find_template(TEMPLATES, "feed-creature-3", "feed-creature", 3) is TEMPLATES[1]

    def test_id_with_changed_target_falls_back_to_type_and_target(self):
        # The template was retuned to target 3 after this instance was assigned with 1
        result = find_template(TEMPLATES, "feed-creature-3", "feed-creature", 1)

        assert result is TEMPLATES[0]

    def test_unknown_id_falls_back_to_first_of_type(self):
        assert find_template(TEMPLATES, "retired-quest", "feed-creature", 10) is TEMPLATES[0]

    def test_unknown_id_without_type(self):
        assert find_template(TEMPLATES, "retired-quest") is None

    def test_unknown_type(self):
        assert find_template(TEMPLATES, "retired-quest", "visit-gallery") is None

    def test_display_for_unknown_uses_placeholders(self):
        catalog = QuestCatalog(TEMPLATES)

        display = catalog.display_for("retired-quest", "visit-gallery", 1)

        assert display["title"] == DEFAULT_TITLE
        assert display["icon"] == DEFAULT_ICON

    def test_display_for_known(self):
        catalog = QuestCatalog(TEMPLATES)

        display = catalog.display_for("customize-2", "customize", 2)

        assert display == {"title": "Customize-2", "description": "Do customize-2", "icon": "*"}


# ============================================================================
# SELECTION
# ============================================================================


@pytest.mark.unit
class TestSelectRandom:
    """Test the daily draw."""

    def test_selects_distinct_templates(self):
        catalog = QuestCatalog(TEMPLATES)

        batch = catalog.select_random(random.Random(1), 3)

        assert len(batch) == 3
        assert len({template.id for template in batch}) == 3

    def test_count_larger_than_catalog(self):
        catalog = QuestCatalog(TEMPLATES)

        assert len(catalog.select_random(random.Random(1), 10)) == 3

    def test_same_seed_same_batch(self):
        catalog = QuestCatalog(TEMPLATES)

        first = catalog.select_random(random.Random(42), 2)
        second = catalog.select_random(random.Random(42), 2)

        assert first == second

    def test_weights_bias_selection(self):
        heavy = _template("feed-creature-1", "feed-creature", 1, weight=50)
        light = _template("customize-2", "customize", 2, weight=1)
        catalog = QuestCatalog([heavy, light])
        rng = random.Random(3)

        firsts = Counter(catalog.select_random(rng, 1)[0].id for _ in range(500))

        assert firsts["feed-creature-1"] > firsts["customize-2"] * 5
