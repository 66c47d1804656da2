import logging
from typing import Optional

from stocksync.core.exceptions import ShopifyAPIError
from stocksync.integrations.base import InventoryPlatform
from stocksync.integrations.events import AdjustmentResult
from stocksync.services.shopify.client import ShopifyGraphQLClient

logger = logging.getLogger(__name__)


class ShopifyPlatform(InventoryPlatform):
    name = "shopify"

    def __init__(self, client: Optional[ShopifyGraphQLClient] = None):
        self.client = client or ShopifyGraphQLClient.from_settings()

    async def adjust_available(self, item_ref: str, location_ref: str, delta: int, reason: str) -> AdjustmentResult:
        try:
            new_quantity = await self.client.adjust_available_quantity(item_ref, location_ref, delta, reason)
        except ShopifyAPIError as e:
            logger.warning(f"Shopify rejected adjustment of {delta} on item {item_ref}: {e}")
            return AdjustmentResult(success=False, error=str(e))
        return AdjustmentResult(success=True, new_quantity=new_quantity)

    async def get_available(self, item_ref: str, location_ref: str) -> int:
        return await self.client.get_available_quantity(item_ref, location_ref)
