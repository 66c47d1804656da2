# tests/conftest.py
import os

# Must be set before stocksync is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_FILE"] = os.path.join(os.path.dirname(__file__), "no-such.env")
os.environ["SHOPIFY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["SERVICE_SECRET"] = ""

import json

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import NegativeStockPolicy
from stocksync.core.security import compute_signature
from stocksync.database import Base
from stocksync.dependencies import get_db, get_inventory_platform
from stocksync.main import app
from stocksync.models import ProductInventory
from tests.mocks.mock_platform import MockPlatform

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = "test_webhook_secret"


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        SHOPIFY_SHOP_URL="test-shop.myshopify.com",
        SHOPIFY_ADMIN_API_ACCESS_TOKEN="shpat_test_token",
        SHOPIFY_API_VERSION="2024-10",
        SHOPIFY_WEBHOOK_SECRET=WEBHOOK_SECRET,
        WEBHOOK_CALLBACK_URL="https://sync.example.com/webhooks/inventory-update",
        SERVICE_SECRET="",
        EXTERNAL_TIMEOUT_SECONDS=1.0,
        ADJUSTMENT_TIMEOUT_SECONDS=0.5,
        MAX_CONCURRENT_EXTERNAL_CALLS=4,
        NEGATIVE_STOCK_POLICY=NegativeStockPolicy.CLAMP,
        LEDGER_CAS_RETRIES=3,
    )


@pytest.fixture
async def test_engine():
    """In-memory SQLite shared by every session in the test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_platform():
    return MockPlatform()


@pytest.fixture
def create_inventory(db_session):
    """Insert a ledger row directly, bypassing the ledger service."""
    async def _create(
        product_id: str,
        stock: int = 0,
        item_ref: str = "X",
        location_ref: str = "L1",
        sync_enabled: bool = True,
    ) -> ProductInventory:
        row = ProductInventory(
            product_id=product_id,
            stock=stock,
            external_item_ref=item_ref,
            external_location_ref=location_ref,
            sync_enabled=sync_enabled,
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _create


@pytest.fixture
def signed_webhook():
    """Build (body, headers) for an inventory_levels/update delivery."""
    def _build(payload, event_id: str = "evt_1", topic: str = "inventory_levels/update", secret: str = WEBHOOK_SECRET):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        headers = {
            "X-Shopify-Topic": topic,
            "X-Shopify-Webhook-Id": event_id,
            "X-Shopify-Hmac-Sha256": compute_signature(body, secret),
            "Content-Type": "application/json",
        }
        return body, headers

    return _build


@pytest.fixture
async def client(session_factory, settings, mock_platform):
    """HTTP client against the app with database, settings and platform overridden"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_inventory_platform] = lambda: mock_platform

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
