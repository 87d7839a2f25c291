"""
Progression domain ORM models.

Exports:
- QuestInstance
"""

from .quest_instance import QuestInstance

__all__ = ["QuestInstance"]
