"""Test configuration and fixtures.

Database access is mocked at the ``Database`` seam: services only call
``fetch``/``fetchrow``/``fetchval``/``execute`` and ``transaction()``, so
rows are plain dicts shaped like the SELECT lists the services issue.
"""

from collections.abc import AsyncIterator, Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from fakeredis import aioredis

from brokerdesk.core.cache import Cache
from brokerdesk.core.config import Settings, clear_settings_cache
from brokerdesk.core.database import Database
from brokerdesk.core.result_types import Ok
from brokerdesk.core.security import TokenSigner

TEST_SECRET = "test-jwt-secret-for-unit-tests-only-not-for-production"


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Every test starts from default settings."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def test_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_env="development",
        jwt_secret=TEST_SECRET,
        portal_base_url="https://portal.example.com/",
        email_service_url=None,
        inbox_check_url=None,
    )


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(secret=TEST_SECRET, algorithm="HS256")


def _async_queries(spec: type | None = None) -> MagicMock:
    target = MagicMock(spec=spec)
    target.fetchval = AsyncMock(return_value=None)
    target.fetchrow = AsyncMock(return_value=None)
    target.fetch = AsyncMock(return_value=[])
    target.execute = AsyncMock(return_value="UPDATE 0")
    target.executemany = AsyncMock(return_value=None)
    return target


@pytest.fixture
def mock_conn() -> MagicMock:
    """Connection handed out by ``mock_db.transaction()``."""
    return _async_queries()


@pytest.fixture
def mock_db(mock_conn: MagicMock) -> MagicMock:
    """Create mock database for testing."""

    @asynccontextmanager
    async def _transaction() -> AsyncIterator[MagicMock]:
        yield mock_conn

    db = _async_queries(Database)
    db.transaction = MagicMock(side_effect=_transaction)
    return db


@pytest.fixture
def mock_cache() -> MagicMock:
    """Create mock cache for testing."""
    cache = MagicMock(spec=Cache)
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock(return_value=True)
    cache.delete = AsyncMock(return_value=True)
    cache.exists = AsyncMock(return_value=False)
    cache.clear_pattern = AsyncMock(return_value=0)
    return cache


@pytest_asyncio.fixture
async def fake_cache() -> AsyncIterator[Cache]:
    """Real ``Cache`` over an in-memory fakeredis server."""
    client = aioredis.FakeRedis(decode_responses=True)
    cache = Cache(client)
    yield cache
    await cache.disconnect()


@pytest.fixture
def mock_sender() -> MagicMock:
    """Email sender that accepts everything."""
    sender = MagicMock()
    sender.send = AsyncMock(return_value=Ok(None))
    return sender


@pytest.fixture
def quote_row() -> Callable[..., dict[str, Any]]:
    """Factory for rows shaped like the quote snapshot SELECT."""

    def _make(**overrides: Any) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        row: dict[str, Any] = {
            "id": "quote-1",
            "organization_id": "org-1",
            "quote_number": "Q-2025-0001",
            "client_id": "client-1",
            "client_name": "Adaeze Okafor",
            "client_email": "adaeze@example.com",
            "policy_type": "motor",
            "premium": Decimal("250000.00"),
            "workflow_stage": "draft",
            "status": "draft",
            "payment_status": None,
            "created_at": now - timedelta(days=1),
            "updated_at": now,
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def payment_row() -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": str(uuid4()),
            "organization_id": "org-1",
            "quote_id": "quote-1",
            "client_id": "client-1",
            "amount": Decimal("250000.00"),
            "currency": "NGN",
            "payment_method": "bank_transfer",
            "payment_provider": None,
            "provider_reference": None,
            "status": "pending",
            "metadata": {},
            "paid_at": None,
            "created_at": datetime.now(timezone.utc),
            "updated_at": None,
        }
        row.update(overrides)
        return row

    return _make
