"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./chainhook-test.db")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_HOST", "localhost")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.models import Base, CapturedEvent, Subscription
from app.models.enums import EventStatus, SubscriptionStatus
from tests.chain_fixtures import (
    CONTRACT_ADDRESS,
    ERC20_ABI,
    OWNER_ID,
    RECIPIENT,
    SENDER,
    TRANSFER_TOPIC,
    WEBHOOK_URL,
    ManualClock,
)


@pytest.fixture
def clock():
    """Manual clock starting at 2026-01-01 12:00 UTC."""
    return ManualClock()


@pytest_asyncio.fixture
async def db_url(tmp_path):
    """File-backed SQLite database with all tables created."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'chainhook.db'}"
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return url


@pytest_asyncio.fixture
async def session_factory(db_url):
    """Session maker bound to the test database."""
    engine = create_async_engine(db_url)
    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory
    await engine.dispose()


@pytest.fixture
def add_subscription(session_factory, clock):
    """Create a subscription and return it."""

    async def _add(**overrides) -> Subscription:
        values = {
            "owner_id": OWNER_ID,
            "chain_id": 56,
            "contract_address": CONTRACT_ADDRESS,
            "abi": ERC20_ABI,
            "webhook_url": WEBHOOK_URL,
            "event_filters": [],
            "last_processed_block": 100,
            "status": SubscriptionStatus.ACTIVE.value,
            "created_at": clock.now(),
            "updated_at": clock.now(),
        }
        values.update(overrides)
        async with session_factory() as session:
            subscription = Subscription(**values)
            session.add(subscription)
            await session.commit()
            return subscription

    return _add


@pytest.fixture
def add_event(session_factory, clock):
    """Create a PENDING decoded Transfer event due now and return it."""

    async def _add(subscription_id: int, log_index: int = 0, **overrides) -> CapturedEvent:
        values = {
            "subscription_id": subscription_id,
            "block_number": 1050,
            "block_hash": "0x" + "11" * 32,
            "transaction_hash": "0x" + f"{log_index:064x}",
            "log_index": log_index,
            "event_name": "Transfer",
            "payload": {
                "kind": "decoded",
                "name": "Transfer",
                "signature": TRANSFER_TOPIC,
                "arguments": [
                    {"name": "from", "kind": "address", "value": SENDER, "indexed": True},
                    {"name": "to", "kind": "address", "value": RECIPIENT, "indexed": True},
                    {"name": "value", "kind": "uint256", "value": "1000", "indexed": False},
                ],
            },
            "status": EventStatus.PENDING.value,
            "retry_count": 0,
            "next_retry_at": clock.now(),
            "created_at": clock.now(),
            "updated_at": clock.now(),
        }
        values.update(overrides)
        async with session_factory() as session:
            event = CapturedEvent(**values)
            session.add(event)
            await session.commit()
            return event

    return _add


@pytest.fixture
def mock_chain_client():
    """Mock ChainClient at head block 1000 with no logs."""
    client = AsyncMock()
    client.get_block_number = AsyncMock(return_value=1000)
    client.get_logs = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_client_pool(mock_chain_client):
    """Mock ChainClientPool returning mock_chain_client for every chain."""
    pool = MagicMock()
    pool.get_client = MagicMock(return_value=mock_chain_client)
    pool.close = AsyncMock()
    return pool
