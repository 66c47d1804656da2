from functools import lru_cache
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.database import async_session
from stocksync.integrations.base import InventoryPlatform
from stocksync.integrations.platforms.shopify import ShopifyPlatform
from stocksync.services.shopify.client import ShopifyGraphQLClient

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()

@lru_cache()
def get_shopify_client() -> ShopifyGraphQLClient:
    """Shared GraphQL client built from settings"""
    return ShopifyGraphQLClient.from_settings()

def get_inventory_platform() -> InventoryPlatform:
    """The external platform holding the authoritative quantities"""
    return ShopifyPlatform(get_shopify_client())
