"""
Database Model Enums
====================

Type-safe constants for the categorical columns of the quest and wallet
tables. Values are the wire/storage spelling; services and the action facade
accept and return these strings.
"""

from __future__ import annotations

import enum
from typing import List


class QuestType(str, enum.Enum):
    """Gameplay actions a daily quest can count."""

    FEED_CREATURE = "feed-creature"
    EVOLVE_CREATURE = "evolve-creature"
    INTERACT_WITH_MULTIPLE = "interact-with-multiple"
    BUY_ACCESSORY = "buy-accessory"
    MAKE_PUBLIC = "make-public"
    CUSTOMIZE = "customize"
    VISIT_GALLERY = "visit-gallery"
    LOGIN_STREAK = "login-streak"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class QuestStatus(str, enum.Enum):
    """
    Lifecycle of a quest instance.

    NOT_STARTED -> IN_PROGRESS -> COMPLETED -> CLAIMED
    NOT_STARTED | IN_PROGRESS -> EXPIRED
    """

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLAIMED = "CLAIMED"
    EXPIRED = "EXPIRED"

    @classmethod
    def progressable(cls) -> List["QuestStatus"]:
        return [cls.NOT_STARTED, cls.IN_PROGRESS]


class TransactionKind(str, enum.Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionReason(str, enum.Enum):
    """Why a wallet balance changed."""

    DAILY_REWARD = "daily-reward"
    QUEST_REWARD = "quest-reward"
    PURCHASE = "purchase"
    LEVEL_UP = "level-up"
    MANUAL = "manual"
    INITIAL_BALANCE = "initial-balance"
    FEED_CREATURE = "feed-creature"
    BOOST_XP = "boost-xp"
    PENALTY = "penalty"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]
