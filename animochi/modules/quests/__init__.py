"""
Quests Module
=============

Domain: Daily quests drawn from a configurable catalog

Services:
- QuestLifecycleService: Assignment, progress tracking, completion and expiry
- QuestCatalog: Quest templates loaded from balance configuration
"""

from .catalog import QuestCatalog, QuestTemplate
from .lifecycle_service import QuestInstanceRepository, QuestLifecycleService

__all__ = [
    "QuestCatalog",
    "QuestTemplate",
    "QuestInstanceRepository",
    "QuestLifecycleService",
]
