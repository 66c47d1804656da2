# stocksync.services.shopify.client

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from stocksync.core.config import Settings, get_settings
from stocksync.core.exceptions import ShopifyAPIError, ShopifyGraphQLError
from stocksync.core.utils import to_gid

logger = logging.getLogger(__name__)


ADJUST_QUANTITIES_MUTATION = """
mutation inventoryAdjustQuantities($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup {
      id
      reason
      changes {
        name
        delta
        quantityAfterChange
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

AVAILABLE_QUANTITY_QUERY = """
query inventoryLevelAvailable($id: ID!, $locationId: ID!) {
  inventoryItem(id: $id) {
    id
    inventoryLevel(locationId: $locationId) {
      id
      quantities(names: ["available"]) {
        name
        quantity
      }
    }
  }
}
"""

WEBHOOK_SUBSCRIPTION_FIELDS = """
  id
  topic
  callbackUrl
  format
  apiVersion {
    handle
  }
"""

LIST_WEBHOOK_SUBSCRIPTIONS_QUERY = f"""
query webhookSubscriptions($first: Int!, $topics: [WebhookSubscriptionTopic!]) {{
  webhookSubscriptions(first: $first, topics: $topics) {{
    edges {{
      node {{
{WEBHOOK_SUBSCRIPTION_FIELDS}
      }}
    }}
  }}
}}
"""

CREATE_WEBHOOK_SUBSCRIPTION_MUTATION = f"""
mutation webhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!) {{
  webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription) {{
    webhookSubscription {{
{WEBHOOK_SUBSCRIPTION_FIELDS}
    }}
    userErrors {{
      field
      message
    }}
  }}
}}
"""

UPDATE_WEBHOOK_SUBSCRIPTION_MUTATION = f"""
mutation webhookSubscriptionUpdate($id: ID!, $webhookSubscription: WebhookSubscriptionInput!) {{
  webhookSubscriptionUpdate(id: $id, webhookSubscription: $webhookSubscription) {{
    webhookSubscription {{
{WEBHOOK_SUBSCRIPTION_FIELDS}
    }}
    userErrors {{
      field
      message
    }}
  }}
}}
"""

DELETE_WEBHOOK_SUBSCRIPTION_MUTATION = """
mutation webhookSubscriptionDelete($id: ID!) {
  webhookSubscriptionDelete(id: $id) {
    deletedWebhookSubscriptionId
    userErrors {
      field
      message
    }
  }
}
"""


class ShopifyGraphQLClient:
    """
    Async client for the parts of the Shopify Admin GraphQL API the sync engine needs:

    - inventoryAdjustQuantities: signed delta on the "available" quantity (deduct/restore)
    - inventoryItem.inventoryLevel: authoritative available quantity at a location (sweep, availability)
    - webhookSubscriptions*: keep the inventory_levels/update subscription pointed at us

    A fresh httpx.AsyncClient is opened per request with a bounded timeout.
    `transport` exists so tests can plug in httpx.MockTransport.
    """

    def __init__(
        self,
        shop_url: str,
        access_token: str,
        api_version: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not shop_url or not access_token:
            raise ValueError("SHOPIFY_SHOP_URL and SHOPIFY_ADMIN_API_ACCESS_TOKEN must be set.")

        self.store_domain = shop_url.replace("https://", "").replace("http://", "").rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.transport = transport
        self.graphql_url = f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"
        self.headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }
        logger.info(f"ShopifyGraphQLClient initialized for {self.store_domain} (API version {self.api_version})")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "ShopifyGraphQLClient":
        settings = settings or get_settings()
        return cls(
            shop_url=settings.SHOPIFY_SHOP_URL or "",
            access_token=settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN or "",
            api_version=settings.SHOPIFY_API_VERSION,
            timeout=settings.EXTERNAL_TIMEOUT_SECONDS,
            **kwargs,
        )

    # --- Meta/Infrastructure ---

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a GraphQL document and return its `data`.

        Raises:
            ShopifyAPIError: transport failure, timeout, non-2xx status, undecodable body
            ShopifyGraphQLError: top-level GraphQL `errors`
        """
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.graphql_url, headers=self.headers, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Shopify request timed out: {e}")
            raise ShopifyAPIError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.error(f"Shopify network error: {e}")
            raise ShopifyAPIError(f"Network error: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(f"Shopify throttled the request (Retry-After={retry_after})")
            raise ShopifyAPIError(f"Rate limited by Shopify (retry after {retry_after or '?'}s)")

        if response.status_code >= 400:
            logger.error(f"Shopify API error {response.status_code}: {response.text[:500]}")
            raise ShopifyAPIError(f"Shopify GraphQL error: {response.status_code} - {response.text[:500]}")

        try:
            response_data = response.json()
        except json.JSONDecodeError as e:
            raise ShopifyAPIError(f"Failed to decode Shopify response: {response.text[:200]}") from e

        self._log_throttle_status(response_data.get("extensions"))

        if response_data.get("errors"):
            raise ShopifyGraphQLError(response_data["errors"])

        data = response_data.get("data")
        if data is None:
            raise ShopifyAPIError("Shopify GraphQL response missing data")
        return data

    def _log_throttle_status(self, extensions: Optional[Dict[str, Any]]):
        if not extensions or "cost" not in extensions:
            return
        throttle = extensions["cost"].get("throttleStatus") or {}
        available = throttle.get("currentlyAvailable")
        maximum = throttle.get("maximumAvailable")
        if available is not None and maximum and available < maximum * 0.1:
            logger.warning(f"Shopify query budget low: {available}/{maximum} points available")

    @staticmethod
    def _raise_on_user_errors(operation: str, result: Dict[str, Any]):
        user_errors = (result or {}).get("userErrors") or []
        if user_errors:
            raise ShopifyAPIError(f"{operation} failed: {json.dumps(user_errors)}")

    # --- Inventory ---

    async def adjust_available_quantity(
        self,
        inventory_item_id: str,
        location_id: str,
        delta: int,
        reason: str = "correction",
    ) -> Optional[int]:
        """
        Adjust the "available" quantity by `delta` (negative = deduct, positive = restore).

        Returns the quantity after the change when Shopify reports it.
        """
        variables = {
            "input": {
                "reason": reason,
                "name": "available",
                "changes": [
                    {
                        "inventoryItemId": to_gid("InventoryItem", inventory_item_id),
                        "locationId": to_gid("Location", location_id),
                        "delta": delta,
                    }
                ],
            }
        }
        logger.info(f"Adjusting Shopify inventory: item={inventory_item_id}, location={location_id}, delta={delta}, reason={reason}")

        data = await self.execute(ADJUST_QUANTITIES_MUTATION, variables)
        result = data.get("inventoryAdjustQuantities") or {}
        self._raise_on_user_errors("inventoryAdjustQuantities", result)

        changes = (result.get("inventoryAdjustmentGroup") or {}).get("changes") or []
        for change in changes:
            if change.get("name") == "available" and change.get("quantityAfterChange") is not None:
                return int(change["quantityAfterChange"])
        return None

    async def get_available_quantity(self, inventory_item_id: str, location_id: str) -> int:
        """
        Read the available quantity for one item at one location.

        Raises ShopifyAPIError if the item is unknown or not stocked at the location,
        rather than guessing zero.
        """
        variables = {
            "id": to_gid("InventoryItem", inventory_item_id),
            "locationId": to_gid("Location", location_id),
        }
        data = await self.execute(AVAILABLE_QUANTITY_QUERY, variables)

        item = data.get("inventoryItem")
        if not item:
            raise ShopifyAPIError(f"Inventory item {inventory_item_id} not found")
        level = item.get("inventoryLevel")
        if not level:
            raise ShopifyAPIError(f"Inventory item {inventory_item_id} is not stocked at location {location_id}")

        for quantity in level.get("quantities") or []:
            if quantity.get("name") == "available":
                return int(quantity["quantity"])
        raise ShopifyAPIError(f"No available quantity reported for item {inventory_item_id}")

    # --- Webhook subscriptions ---

    async def list_webhook_subscriptions(self, topic: str = "INVENTORY_LEVELS_UPDATE") -> List[Dict[str, Any]]:
        data = await self.execute(LIST_WEBHOOK_SUBSCRIPTIONS_QUERY, {"first": 50, "topics": [topic]})
        edges = (data.get("webhookSubscriptions") or {}).get("edges") or []
        return [edge["node"] for edge in edges]

    async def create_webhook_subscription(self, topic: str, callback_url: str) -> Optional[Dict[str, Any]]:
        data = await self.execute(
            CREATE_WEBHOOK_SUBSCRIPTION_MUTATION,
            {"topic": topic, "webhookSubscription": {"callbackUrl": callback_url, "format": "JSON"}},
        )
        result = data.get("webhookSubscriptionCreate") or {}
        self._raise_on_user_errors("webhookSubscriptionCreate", result)
        return result.get("webhookSubscription")

    async def update_webhook_subscription(self, subscription_id: str, callback_url: str) -> Optional[Dict[str, Any]]:
        data = await self.execute(
            UPDATE_WEBHOOK_SUBSCRIPTION_MUTATION,
            {"id": subscription_id, "webhookSubscription": {"callbackUrl": callback_url, "format": "JSON"}},
        )
        result = data.get("webhookSubscriptionUpdate") or {}
        self._raise_on_user_errors("webhookSubscriptionUpdate", result)
        return result.get("webhookSubscription")

    async def delete_webhook_subscription(self, subscription_id: str) -> Optional[str]:
        data = await self.execute(DELETE_WEBHOOK_SUBSCRIPTION_MUTATION, {"id": subscription_id})
        result = data.get("webhookSubscriptionDelete") or {}
        self._raise_on_user_errors("webhookSubscriptionDelete", result)
        return result.get("deletedWebhookSubscriptionId")
