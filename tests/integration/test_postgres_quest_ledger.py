"""
Integration Tests on PostgreSQL
===============================

Purpose
-------
Run the concurrency-sensitive paths against PostgreSQL in a testcontainer,
where `SELECT ... FOR UPDATE`, READ COMMITTED re-evaluation of the claim's
conditional UPDATE and the schema's CHECK constraints are all real.

Test Coverage
-------------
- Schema creation and constraint names
- CHECK constraints as a last line of defense
- Concurrent debits, claims, wallet creation and assignment

Testing Strategy
----------------
- Integration tests (Docker required; run with `pytest -m integration`)
- Fresh schema per test
"""

import asyncio
import random

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from animochi.core.logging.logger import get_logger
from animochi.core.services.container import ServiceContainer
from animochi.database.models.economy import Wallet, WalletTransaction
from animochi.modules.shared.exceptions import (
    ConcurrencyLostError,
    InsufficientBalanceError,
    InvalidStateError,
)
from tests.conftest import RESET_SECRET


@pytest_asyncio.fixture
async def pg_container(postgres_database, config_manager, event_bus, clock, retry_policy):
    container = ServiceContainer(
        database=postgres_database,
        config_manager=config_manager,
        event_bus=event_bus,
        logger=get_logger("tests.integration.container"),
        clock=clock,
        retry_policy=retry_policy,
        reset_secret=RESET_SECRET,
        rng=random.Random(0),
    )
    await container.initialize()

    yield container

    await container.shutdown()


# ============================================================================
# SCHEMA TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSchema:
    """Test that the schema is created with its constraints."""

    async def test_tables_exist(self, postgres_database):
        async with postgres_database.get_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public'
                    """
                )
            )
            tables = {row.table_name for row in result.fetchall()}

        assert {"wallets", "wallet_transactions", "quest_instances"} <= tables

    async def test_named_constraints(self, postgres_database):
        async with postgres_database.get_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT conname FROM pg_constraint
                    WHERE conrelid IN ('wallets'::regclass, 'quest_instances'::regclass)
                    """
                )
            )
            names = {row.conname for row in result.fetchall()}

        assert "ck_wallets_balance_non_negative" in names
        assert "uq_wallets_owner_id" in names
        assert "uq_quest_instances_user_id_cycle_date_slot" in names

    async def test_negative_balance_is_refused_by_the_database(self, postgres_database):
        with pytest.raises(IntegrityError):
            async with postgres_database.get_transaction() as session:
                session.add(Wallet(owner_id="user-1", balance=-1))

    async def test_transaction_sign_must_match_kind(self, postgres_database):
        async with postgres_database.get_transaction() as session:
            wallet = Wallet(owner_id="user-1", balance=0)
            session.add(wallet)
            await session.flush()
            wallet_id = wallet.id

        with pytest.raises(IntegrityError):
            async with postgres_database.get_transaction() as session:
                session.add(
                    WalletTransaction(
                        wallet_id=wallet_id, amount=10, kind="DEBIT", reason="purchase", meta={}
                    )
                )


# ============================================================================
# CONCURRENCY TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestConcurrency:
    """Test the guarantees that depend on real row locking."""

    async def test_concurrent_debits_never_overdraw(self, pg_container):
        ledger = pg_container.ledger
        await ledger.get_or_create_wallet("user-1")

        results = await asyncio.gather(
            *(ledger.debit("user-1", 1000, "purchase") for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, int) for r in results) == 3
        assert sum(isinstance(r, InsufficientBalanceError) for r in results) == 2
        assert await ledger.get_balance("user-1") == 0
        assert (await ledger.verify_ledger("user-1"))["consistent"] is True

    async def test_concurrent_claims_credit_once(self, pg_container):
        quests, claims, ledger = pg_container.quests, pg_container.claims, pg_container.ledger
        await ledger.get_or_create_wallet("user-1")
        await quests.assign_daily_quests("user-1")
        await quests.update_quest_progress("user-1", "feed-creature-3", 3)

        results = await asyncio.gather(
            *(claims.claim("user-1", "feed-creature-3") for _ in range(8)),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, (ConcurrencyLostError, InvalidStateError))]
        assert len(winners) == 1
        assert len(losers) == 7
        assert await ledger.get_balance("user-1") == 3050
        assert len(await ledger.get_transactions("user-1")) == 1

    async def test_concurrent_wallet_creation(self, pg_container):
        ledger = pg_container.ledger

        wallets = await asyncio.gather(*(ledger.get_or_create_wallet("user-1") for _ in range(6)))

        assert len({wallet["id"] for wallet in wallets}) == 1

    async def test_concurrent_assignment(self, pg_container):
        quests = pg_container.quests

        batches = await asyncio.gather(*(quests.assign_daily_quests("user-1") for _ in range(6)))

        assert len({tuple(sorted(q["id"] for q in batch)) for batch in batches}) == 1
        assert await quests.count_quests_by_status("user-1", "NOT_STARTED") == 3

    async def test_facade_flow(self, pg_container):
        actions = pg_container.actions
        await actions.get_daily_quests("user-1")
        await actions.update_quest_progress("user-1", "customize-1")

        result = await actions.claim_quest_reward("user-1", "customize-1")

        assert result.data == {"reward": 10, "new_balance": 3010}
