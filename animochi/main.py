"""
Animochi - Application Entry Point
==================================

Bootstrap
---------
- Config validation
- Logging setup
- Database initialization
- ConfigManager initialization (built-in defaults + config/*.yaml)
- Service container initialization
- Graceful shutdown

Operator commands
-----------------
    animochi init-db        Create the schema
    animochi reset-daily    Expire every unfinished quest whose day has ended
    animochi health         Print a health snapshot

`reset-daily` is what a scheduler runs shortly after midnight in
QUEST_TIMEZONE; it authenticates with QUEST_RESET_SECRET like any other
caller of the bulk reset.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Tuple

from animochi.core.clock import Clock
from animochi.core.config.config import Config
from animochi.core.config.manager import ConfigManager
from animochi.core.database.retry_policy import DatabaseRetryPolicy
from animochi.core.database.service import DatabaseService
from animochi.core.event.bus import EventBus
from animochi.core.logging.logger import get_logger, setup_logging, shutdown_logging
from animochi.core.services.container import ServiceContainer

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> Tuple[DatabaseService, ServiceContainer]:
    """Initialize all infrastructure components."""
    logger.info("========== ANIMOCHI INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated")
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    database = DatabaseService.from_config()
    try:
        await database.initialize()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    try:
        config_manager = ConfigManager(config_dir=Config.CONFIG_DIR)
        config_manager.initialize()
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        await database.shutdown()
        raise

    # Step 4: Initialize service container
    try:
        container = ServiceContainer(
            database=database,
            config_manager=config_manager,
            event_bus=EventBus(),
            logger=get_logger("animochi.core.services.container"),
            clock=Clock(Config.QUEST_TIMEZONE),
            retry_policy=DatabaseRetryPolicy.from_config(),
            reset_secret=Config.QUEST_RESET_SECRET,
        )
        await container.initialize()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        await database.shutdown()
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return database, container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown(database: Optional[DatabaseService], container: Optional[ServiceContainer]) -> None:
    """Gracefully shut down services and infrastructure."""
    logger.info("========== ANIMOCHI SHUTDOWN START ==========")

    if container is not None:
        try:
            await container.shutdown()
            logger.info("✓ Service container shut down")
        except Exception as exc:
            logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    if database is not None:
        try:
            await database.shutdown()
            logger.info("✓ Database service shut down")
        except Exception as exc:
            logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Commands
# ============================================================================

async def run(command: str) -> int:
    database: Optional[DatabaseService] = None
    container: Optional[ServiceContainer] = None

    try:
        database, container = await _startup()

        if command == "init-db":
            await database.create_all()
            logger.info("✓ Schema created")
            return 0

        if command == "reset-daily":
            result = await container.actions.reset_all_daily_quests(Config.QUEST_RESET_SECRET)
            print(json.dumps(result.to_dict()))
            return 0 if result.success else 1

        if command == "health":
            snapshot = await container.health_check()
            print(json.dumps(snapshot))
            return 0 if snapshot["database"] else 1

        logger.error(f"Unknown command: {command}")
        return 2

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal error: {exc}", exc_info=True)
        return 1

    finally:
        await _shutdown(database, container)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="animochi", description="Animochi quest ledger operations")
    parser.add_argument("command", choices=["init-db", "reset-daily", "health"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    Config.load()
    setup_logging()
    try:
        return asyncio.run(run(args.command))
    except KeyboardInterrupt:
        logger.info("Stopped via keyboard interrupt.")
        return 130
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
