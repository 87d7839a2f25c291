"""
Pytest Configuration and Fixtures for the Animochi Test Suite
=============================================================

Purpose
-------
Centralized fixtures for the quest lifecycle and wallet ledger tests.

Responsibilities
----------------
- Temporary SQLite database per test (real SQL, real transactions)
- Testcontainers PostgreSQL for integration tests
- Deterministic balance configuration, clock and RNG
- Service container wiring and event capture

Architecture Notes
------------------
- Every test gets its own database file, so tests never share rows
- The clock is frozen at 2025-03-14 10:00 UTC unless a test moves it
- The quest catalog has exactly `daily_count` templates, so every assignment
  contains all of them and tests can look quests up by id
"""

from __future__ import annotations

import os
import random
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Generator, List, Tuple

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from animochi.core.clock import FixedClock
from animochi.core.config.manager import ConfigManager
from animochi.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from animochi.core.database.service import DatabaseService
from animochi.core.event.bus import EventBus
from animochi.core.logging.logger import get_logger
from animochi.core.services.container import ServiceContainer

logger = get_logger(__name__)

RESET_SECRET = "test-reset-secret"
FROZEN_NOW = datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc)
END_OF_DAY_UTC = datetime(2025, 3, 15, 0, 0, tzinfo=timezone.utc)

PUBLISHED_EVENTS = (
    "quests.assigned",
    "quest.completed",
    "quests.expired",
    "quest.reward_claimed",
    "wallet.created",
    "wallet.credited",
    "wallet.debited",
)

TEST_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "feed-creature-3",
        "type": "feed-creature",
        "title": "Nourrir 3 créatures",
        "description": "Donne à manger à tes Animochis trois fois",
        "icon": "🍖",
        "target_count": 3,
        "reward": 50,
    },
    {
        "id": "customize-1",
        "type": "customize",
        "title": "Personnaliser",
        "description": "Change l'apparence d'une créature",
        "icon": "🎨",
        "target_count": 1,
        "reward": 10,
    },
    {
        "id": "interact-with-multiple-2",
        "type": "interact-with-multiple",
        "title": "Interagir avec 2 créatures",
        "description": "Joue avec deux Animochis différents",
        "icon": "🤝",
        "target_count": 2,
        "reward": 30,
    },
]

TEST_BALANCE_CONFIG: Dict[str, Any] = {
    "economy": {
        "welcome_balance": 3000,
        "max_transaction_amount": 10000,
        "transactions_page_size": 50,
    },
    "quests": {
        "daily_count": 3,
        "completed_history_limit": 30,
        "templates": TEST_TEMPLATES,
    },
}


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Uses: Integration tests that need real database
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(
        image="postgres:17-alpine",
        driver="asyncpg",
    )
    container.start()

    logger.info("PostgreSQL testcontainer started")

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def postgres_database(
    postgres_container: PostgresContainer,
) -> AsyncGenerator[DatabaseService, None]:
    """
    DatabaseService connected to the testcontainer, with a fresh schema.

    Scope: function (schema dropped after each test)
    """
    url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    database = DatabaseService.from_url(url, use_null_pool=True)
    await database.initialize()
    await database.drop_all()
    await database.create_all()

    yield database

    await database.drop_all()
    await database.shutdown()


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[DatabaseService, None]:
    """
    DatabaseService on a throwaway SQLite file.

    Scope: function (new file per test, clean slate)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'animochi-test.db'}"
    database = DatabaseService.from_url(url)
    await database.initialize()
    await database.create_all()

    yield database

    await database.shutdown()


# ============================================================================
# INFRASTRUCTURE FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> ConfigManager:
    return ConfigManager.from_dict(TEST_BALANCE_CONFIG)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FROZEN_NOW)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def captured_events(event_bus: EventBus) -> List[Tuple[str, Dict[str, Any]]]:
    """Every event published on `event_bus`, as (name, payload) pairs."""
    events: List[Tuple[str, Dict[str, Any]]] = []

    for name in PUBLISHED_EVENTS:
        event_bus.subscribe(name, lambda data, _name=name: events.append((_name, data)))

    return events


def event_names(events: List[Tuple[str, Dict[str, Any]]]) -> List[str]:
    return [name for name, _ in events]


@pytest.fixture
def retry_policy() -> DatabaseRetryPolicy:
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=3,
            initial_backoff_ms=1,
            max_backoff_ms=5,
            jitter_ms=0,
        )
    )


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def container(
    database: DatabaseService,
    config_manager: ConfigManager,
    event_bus: EventBus,
    clock: FixedClock,
    retry_policy: DatabaseRetryPolicy,
) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired ServiceContainer on the SQLite database."""
    container = ServiceContainer(
        database=database,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.container"),
        clock=clock,
        retry_policy=retry_policy,
        reset_secret=RESET_SECRET,
        rng=random.Random(0),
    )
    await container.initialize()

    yield container

    await container.shutdown()


@pytest.fixture
def ledger(container: ServiceContainer):
    return container.ledger


@pytest.fixture
def quests(container: ServiceContainer):
    return container.quests


@pytest.fixture
def claims(container: ServiceContainer):
    return container.claims


@pytest.fixture
def actions(container: ServiceContainer):
    return container.actions


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def quest_by_id(quests: List[Dict[str, Any]], quest_id: str) -> Dict[str, Any]:
    """
    Pick one quest out of an assignment.

    Usage:
        daily = await quests.assign_daily_quests("user-1")
        feed = quest_by_id(daily, "feed-creature-3")
    """
    for quest in quests:
        if quest["quest_id"] == quest_id:
            return quest
    raise AssertionError(f"{quest_id} not in {[q['quest_id'] for q in quests]}")
