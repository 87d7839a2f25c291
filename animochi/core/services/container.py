"""
Service Container
=================

Purpose
-------
Dependency injection container for the quest, reward and wallet services.
Builds every service once, in dependency order, from explicitly injected
infrastructure (database, balance config, event bus, clock).

Responsibilities
----------------
- Build the quest catalog from balance configuration
- Initialize services with their collaborators
- Expose the `QuestActions` facade
- Lifecycle (initialize, shutdown) and a health snapshot

Non-Responsibilities
--------------------
- Database engine lifecycle (owned by DatabaseService)
- Business logic

Architecture Notes
------------------
- Nothing here is a global; tests build as many containers as they like
- Every service receives its own named logger
"""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, TypeVar

from animochi.core.clock import Clock
from animochi.core.database.retry_policy import DatabaseRetryPolicy
from animochi.core.logging.logger import get_logger
from animochi.modules.actions import QuestActions
from animochi.modules.quests.catalog import QuestCatalog
from animochi.modules.quests.lifecycle_service import QuestLifecycleService
from animochi.modules.rewards.claim_service import RewardClaimService
from animochi.modules.wallet.ledger_service import WalletLedgerService

if TYPE_CHECKING:
    from logging import Logger

    from animochi.core.config.manager import ConfigManager
    from animochi.core.database.service import DatabaseService
    from animochi.core.event.bus import EventBus

S = TypeVar("S")

_NOT_INITIALIZED = "ServiceContainer not initialized. Call initialize() first."


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(database, config_manager, event_bus, logger)
        await container.initialize()

        result = await container.actions.claim_quest_reward(user_id, quest_id)
    """

    EXPECTED_SERVICES = ("catalog", "ledger", "quests", "claims", "actions")

    def __init__(
        self,
        database: DatabaseService,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
        reset_secret: str = "",
        rng: Optional[random.Random] = None,
    ) -> None:
        self._database = database
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._clock = clock or Clock()
        self._retry_policy = retry_policy or DatabaseRetryPolicy.from_config()
        self._reset_secret = reset_secret
        self._rng = rng

        self._catalog: Optional[QuestCatalog] = None
        self._ledger: Optional[WalletLedgerService] = None
        self._quests: Optional[QuestLifecycleService] = None
        self._claims: Optional[RewardClaimService] = None
        self._actions: Optional[QuestActions] = None

        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Build all services.

        Call during startup after DatabaseService, ConfigManager and EventBus
        are ready.
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            catalog = self._timed(
                "catalog", lambda: QuestCatalog.from_config(self._config_manager)
            )
            ledger = self._timed(
                "ledger",
                lambda: WalletLedgerService(
                    database=self._database,
                    config_manager=self._config_manager,
                    event_bus=self._event_bus,
                    logger=self._service_logger(WalletLedgerService),
                ),
            )
            quests = self._timed(
                "quests",
                lambda: QuestLifecycleService(
                    database=self._database,
                    catalog=catalog,
                    clock=self._clock,
                    config_manager=self._config_manager,
                    event_bus=self._event_bus,
                    logger=self._service_logger(QuestLifecycleService),
                    rng=self._rng,
                ),
            )
            claims = self._timed(
                "claims",
                lambda: RewardClaimService(
                    database=self._database,
                    quests=quests,
                    ledger=ledger,
                    clock=self._clock,
                    config_manager=self._config_manager,
                    event_bus=self._event_bus,
                    logger=self._service_logger(RewardClaimService),
                ),
            )
            actions = self._timed(
                "actions",
                lambda: QuestActions(
                    quests=quests,
                    claims=claims,
                    ledger=ledger,
                    retry_policy=self._retry_policy,
                    reset_secret=self._reset_secret,
                    logger=self._service_logger(QuestActions),
                ),
            )
        except Exception:
            self._logger.error("Service container initialization failed", exc_info=True)
            raise

        self._catalog = catalog
        self._ledger = ledger
        self._quests = quests
        self._claims = claims
        self._actions = actions

        self._init_end = time.perf_counter()
        self._initialized = True

        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._service_init_times),
                "template_count": len(catalog),
                "quest_timezone": self._clock.tz_name,
                "total_init_time_ms": round((self._init_end - self._init_start) * 1000, 2),
            },
        )

    def _timed(self, name: str, factory: Callable[[], S]) -> S:
        start = time.perf_counter()

        try:
            instance = factory()
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    @staticmethod
    def _service_logger(cls: type) -> Logger:
        return get_logger(f"{cls.__module__}.{cls.__name__}")

    async def shutdown(self) -> None:
        """Release services; the database is shut down by its owner."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")

        self._actions = None
        self._claims = None
        self._quests = None
        self._ledger = None
        self._catalog = None

        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        """Health snapshot for diagnostics."""
        database_ok = await self._database.health_check() if self._database.is_initialized else False

        return {
            "initialized": self._initialized,
            "database": database_ok,
            "service_count": len(self._service_init_times),
            "events": self._event_bus.get_stats(),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized
            and all(name in self._service_init_times for name in self.EXPECTED_SERVICES),
        }

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def catalog(self) -> QuestCatalog:
        if not self._initialized or self._catalog is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._catalog

    @property
    def ledger(self) -> WalletLedgerService:
        if not self._initialized or self._ledger is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._ledger

    @property
    def quests(self) -> QuestLifecycleService:
        if not self._initialized or self._quests is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._quests

    @property
    def claims(self) -> RewardClaimService:
        if not self._initialized or self._claims is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._claims

    @property
    def actions(self) -> QuestActions:
        if not self._initialized or self._actions is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._actions

    @property
    def is_initialized(self) -> bool:
        return self._initialized
