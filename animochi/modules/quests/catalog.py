"""
Quest Catalog
=============

Purpose
-------
Immutable set of quest templates loaded from balance configuration
(`quests.templates` in `config/quests.yaml`). The lifecycle service draws the
day's batch from it and the action facade uses it to enrich instances with
display fields.

Design Notes
------------
- Templates are validated once at construction; a bad entry is a
  ConfigurationError at startup, not a runtime surprise.
- A reward must fit in a single wallet credit
  (`economy.max_transaction_amount`), or a completed quest could never be
  claimed.
- Weighted selection draws without replacement, recomputing the remaining
  weight after each pick.
- `find_template` is a pure function so lookup rules can be tested on plain
  tuples of templates.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from animochi.core.exceptions import ConfigurationError
from animochi.database.models.enums import QuestType

if TYPE_CHECKING:
    from animochi.core.config.manager import ConfigManager

DEFAULT_TITLE = "Quête mystère"
DEFAULT_DESCRIPTION = "Complète cette quête"
DEFAULT_ICON = "🎯"


@dataclass(frozen=True)
class QuestTemplate:
    """Catalog description of an objective."""

    id: str
    type: QuestType
    title: str
    description: str
    icon: str
    target_count: int
    reward: int
    weight: int = 1

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "QuestTemplate":
        """Build a template from one YAML entry, raising ConfigurationError if malformed."""
        if not isinstance(raw, Mapping):
            raise ConfigurationError(
                "quests.templates", f"Template entries must be mappings, got {type(raw).__name__}"
            )

        template_id = raw.get("id")
        if not isinstance(template_id, str) or not template_id.strip():
            raise ConfigurationError("quests.templates", f"Template without a valid id: {dict(raw)!r}")

        key = f"quests.templates[{template_id}]"

        try:
            quest_type = QuestType(raw.get("type"))
        except ValueError as exc:
            raise ConfigurationError(key, f"Unknown quest type {raw.get('type')!r}") from exc

        numbers = {}
        for field_name, minimum, default in (
            ("target_count", 1, None),
            ("reward", 1, None),
            ("weight", 1, 1),
        ):
            value = raw.get(field_name, default)
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ConfigurationError(key, f"{field_name} must be an integer >= {minimum}, got {value!r}")
            numbers[field_name] = value

        return cls(
            id=template_id.strip(),
            type=quest_type,
            title=str(raw.get("title") or DEFAULT_TITLE),
            description=str(raw.get("description") or DEFAULT_DESCRIPTION),
            icon=str(raw.get("icon") or DEFAULT_ICON),
            **numbers,
        )

    def display_fields(self) -> Dict[str, str]:
        return {"title": self.title, "description": self.description, "icon": self.icon}


def find_template(
    templates: Sequence[QuestTemplate],
    quest_id: str,
    quest_type: Optional[str] = None,
    target_count: Optional[int] = None,
) -> Optional[QuestTemplate]:
    """
    Resolve the template behind a quest instance.

    Order: exact id (with matching target count when one is given), then
    same type and target count, then the first template of that type.
    """
    for template in templates:
        if template.id == quest_id and (target_count is None or template.target_count == target_count):
            return template

    if quest_type is None:
        return None

    same_type = [t for t in templates if t.type.value == quest_type]

    if target_count is not None:
        for template in same_type:
            if template.target_count == target_count:
                return template

    return same_type[0] if same_type else None


class QuestCatalog:
    """
    Read-only collection of quest templates.

    Example:
        >>> catalog = QuestCatalog.from_config(config_manager)
        >>> batch = catalog.select_random(random.Random(7), 3)
    """

    def __init__(
        self, templates: Iterable[QuestTemplate], max_reward: Optional[int] = None
    ) -> None:
        self._templates = tuple(templates)

        if not self._templates:
            raise ConfigurationError("quests.templates", "Quest catalog is empty")

        seen = set()
        for template in self._templates:
            if template.id in seen:
                raise ConfigurationError("quests.templates", f"Duplicate template id '{template.id}'")
            seen.add(template.id)

            if max_reward is not None and template.reward > max_reward:
                raise ConfigurationError(
                    f"quests.templates[{template.id}]",
                    f"reward {template.reward} exceeds economy.max_transaction_amount ({max_reward})",
                )

        self._by_id = {template.id: template for template in self._templates}

    @classmethod
    def from_config(cls, config_manager: ConfigManager) -> "QuestCatalog":
        raw_templates = config_manager.get("quests.templates", [])
        if not isinstance(raw_templates, list):
            raise ConfigurationError("quests.templates", "Expected a list of templates")

        max_reward = config_manager.get("economy.max_transaction_amount", 10000)
        if isinstance(max_reward, bool) or not isinstance(max_reward, int) or max_reward < 1:
            raise ConfigurationError(
                "economy.max_transaction_amount", f"Expected a positive integer, got {max_reward!r}"
            )

        return cls(
            (QuestTemplate.from_mapping(raw) for raw in raw_templates),
            max_reward=max_reward,
        )

    @property
    def templates(self) -> tuple:
        return self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self) -> Iterator[QuestTemplate]:
        return iter(self._templates)

    def __contains__(self, quest_id: object) -> bool:
        return quest_id in self._by_id

    def get(self, quest_id: str) -> Optional[QuestTemplate]:
        return self._by_id.get(quest_id)

    def find(
        self,
        quest_id: str,
        quest_type: Optional[str] = None,
        target_count: Optional[int] = None,
    ) -> Optional[QuestTemplate]:
        return find_template(self._templates, quest_id, quest_type, target_count)

    def display_for(
        self,
        quest_id: str,
        quest_type: Optional[str] = None,
        target_count: Optional[int] = None,
    ) -> Dict[str, str]:
        """Display fields for an instance, with placeholders when no template matches."""
        template = self.find(quest_id, quest_type, target_count)
        if template is None:
            return {"title": DEFAULT_TITLE, "description": DEFAULT_DESCRIPTION, "icon": DEFAULT_ICON}
        return template.display_fields()

    def select_random(self, rng: random.Random, count: int) -> List[QuestTemplate]:
        """Draw up to `count` distinct templates, weighted by `weight`."""
        available = list(self._templates)
        selected: List[QuestTemplate] = []

        for _ in range(min(count, len(available))):
            pick = rng.choices(available, weights=[t.weight for t in available], k=1)[0]
            selected.append(pick)
            available.remove(pick)

        return selected
