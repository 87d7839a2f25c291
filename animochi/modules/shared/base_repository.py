"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction for database operations
following SQLAlchemy 2.0 async patterns. Repositories encapsulate data access
and give services one consistent interface for reads, locked reads and
conditional updates.

Design Notes
------------
This base repository provides:
- Single-row reads with optional pessimistic locking (SELECT FOR UPDATE)
- Ordered, paginated multi-row reads
- Conditional bulk updates that report how many rows they touched, which is
  the compare-and-swap primitive the reward claim relies on
- Row counting
- Full structured logging

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic

Usage
-----
    class WalletRepository(BaseRepository[Wallet]):
        async def find_by_owner(self, session, owner_id):
            return await self.find_one_where(session, Wallet.owner_id == owner_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        With `order_by`, the first row in that order is returned; without it
        more than one match is an error (MultipleResultsFound).
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by).limit(1)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        for_update: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ORDER BY clauses
            for_update: If True, use SELECT FOR UPDATE
            limit: Optional maximum number of results
            offset: Optional number of rows to skip

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        if limit is not None:
            stmt = stmt.limit(limit)

        if offset:
            stmt = stmt.offset(offset)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
                "offset": offset,
            },
        )

        return instances

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "count": count,
            },
        )

        return count

    async def update_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: dict[str, Any],
    ) -> int:
        """
        Issue `UPDATE ... SET values WHERE conditions` and return the row count.

        The WHERE clause is evaluated by the database at write time, so a
        condition on the current status makes this a compare-and-swap: only
        one of several concurrent callers can observe a row count of 1.
        Loaded instances in the session are not refreshed.
        """
        stmt = (
            update(self.model_class)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        rowcount = result.rowcount or 0

        self.log.debug(
            f"Repository.update_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "rowcount": rowcount,
                "columns": sorted(values),
            },
        )

        return rowcount

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session."""
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

        return instance

    def add_many(self, session: AsyncSession, instances: Sequence[T]) -> List[T]:
        """Add multiple instances to the session."""
        session.add_all(instances)

        self.log.debug(
            f"Repository.add_many: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "count": len(instances),
            },
        )

        return list(instances)

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes so generated keys and constraints apply now."""
        await session.flush()
