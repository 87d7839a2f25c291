"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async database engine and session management for the Animochi quest and
wallet core. Provides atomic transactions, pessimistic locking support, and
a health check. Instances are constructed once at bootstrap and injected into
every repository-backed service; nothing reaches for a module-level handle.

Responsibilities
----------------
- Own a single AsyncEngine with connection pooling
- Provide async context managers for read sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on exception
- Configure PostgreSQL statement timeouts and SQLite write serialization
- Create the schema for development and tests

Non-Responsibilities
--------------------
- Retry policies for transient failures (handled by DatabaseRetryPolicy)
- Domain logic, business rules, or event emission

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never manually call `session.commit()` inside service code
- Pessimistic locks via `select(...).with_for_update()`

**SQLite**:
- pysqlite/aiosqlite emit their own BEGIN lazily, which defeats row locking.
  The engine disables that and issues `BEGIN IMMEDIATE` itself, so every
  transaction takes the database write lock up front. Concurrent writers
  therefore serialize, which is what `FOR UPDATE` gives on PostgreSQL.
- SQLite always uses NullPool; use a file-backed database, not `:memory:`.

**Connection Pooling (PostgreSQL)**:
- QueuePool with configurable pool_size and max_overflow
- NullPool when `use_null_pool=True` (tests)

Usage Example
-------------
>>> db = DatabaseService.from_config()
>>> await db.initialize()
>>> async with db.get_transaction() as session:
...     wallet = await session.get(Wallet, wallet_id, with_for_update=True)
...     wallet.balance += 50

Error Handling
--------------
**DatabaseInitializationError** - Raised when:
- the database URL is missing or invalid
- engine creation fails

**DatabaseNotInitializedError** - Raised when:
- a session is requested before initialize() or after shutdown()
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, QueuePool

from animochi.core.config.config import Config
from animochi.core.database.base import Base
from animochi.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Immutable snapshot of database configuration.

    Provides a stable configuration view for the lifetime of the engine.
    """

    url: str
    echo: bool = False
    use_null_pool: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_recycle: int = 3600
    pool_timeout: int = 30
    statement_timeout_ms: int = 30_000
    sqlite_busy_timeout_s: float = 30.0

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"

    @property
    def pool_class(self) -> Type[Pool]:
        if self.is_sqlite or self.use_null_pool:
            return NullPool
        return QueuePool

    @classmethod
    def from_config(cls) -> "DatabaseSettings":
        """
        Build settings from Config.

        Raises
        ------
        DatabaseInitializationError
            If DATABASE_URL is missing or invalid.
        """
        database_url = Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        return cls(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            use_null_pool=Config.is_testing(),
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
        )


# ============================================================================
# SQLite transaction control
# ============================================================================


def _install_sqlite_locking(engine: AsyncEngine) -> None:
    """Make every SQLite transaction start with BEGIN IMMEDIATE."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Stop the driver from emitting its own deferred BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ============================================================================
# DatabaseService - Core Infrastructure
# ============================================================================


class DatabaseService:
    """
    Async database engine and session management.

    Public API
    ----------
    **Lifecycle**:
    - initialize() -> Create engine and session factory
    - shutdown() -> Dispose engine and cleanup resources
    - create_all() / drop_all() -> Schema management for dev and tests

    **Session Management**:
    - get_session() -> Reads, no automatic commit
    - get_transaction() -> Atomic write transaction (preferred)

    **Utilities**:
    - health_check() -> Fast database reachability check
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "DatabaseService":
        return cls(DatabaseSettings.from_config())

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "DatabaseService":
        return cls(DatabaseSettings(url=url, **kwargs))

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_initialized()
        assert self._engine is not None
        return self._engine

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    async def initialize(self) -> None:
        """
        Create the engine and session factory (idempotent).

        Raises
        ------
        DatabaseInitializationError
            If engine creation fails.
        """
        async with self._init_lock:
            if self._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            settings = self._settings
            logger.info(
                "Initializing DatabaseService",
                extra={"url_scheme": settings.url_scheme},
            )

            try:
                engine_kwargs: dict[str, Any] = {
                    "echo": settings.echo,
                    "poolclass": settings.pool_class,
                }

                if settings.pool_class is QueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": settings.pool_size,
                            "max_overflow": settings.max_overflow,
                            "pool_recycle": settings.pool_recycle,
                            "pool_timeout": settings.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                if settings.is_sqlite:
                    engine_kwargs["connect_args"] = {
                        "timeout": settings.sqlite_busy_timeout_s
                    }

                engine = create_async_engine(settings.url, **engine_kwargs)
                if settings.is_sqlite:
                    _install_sqlite_locking(engine)

                self._engine = engine
                self._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": settings.url_scheme,
                        "pool_class": settings.pool_class.__name__,
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    async def shutdown(self) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with self._init_lock:
            if self._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await self._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                self._engine = None
                self._session_factory = None

    async def create_all(self) -> None:
        """Create every table registered on `Base.metadata`."""
        # Models register themselves on import
        import animochi.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema created",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    async def drop_all(self) -> None:
        import animochi.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Execute `SELECT 1`.

        Returns False instead of raising when the database is unreachable.
        """
        if self._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        success = False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
            return True

        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.debug(
                "Database health check completed",
                extra={"success": success, "duration_ms": duration_ms},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    def _ensure_initialized(self) -> None:
        if self._session_factory is None or self._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call initialize() during startup."
            )

    async def _apply_statement_timeout(self, session: AsyncSession) -> None:
        if self._settings.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {self._settings.statement_timeout_ms}")
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        For write operations, prefer `get_transaction()`.
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        async with self._session_factory() as session:
            await self._apply_statement_timeout(session)
            yield session

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session wrapped in an atomic transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception. Domain exceptions raised inside the block therefore
        leave no partial state behind.

        Usage Example
        -------------
        >>> async with db.get_transaction() as session:
        ...     wallet.balance += 50
        ...     session.add(WalletTransaction(...))
        """
        self._ensure_initialized()
        assert self._session_factory is not None

        start = time.perf_counter()
        async with self._session_factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise

            except BaseException:
                await session.rollback()
                logger.debug(
                    "Database transaction rolled back",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
                raise
