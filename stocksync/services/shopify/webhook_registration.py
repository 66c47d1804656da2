# stocksync/services/shopify/webhook_registration.py
"""
Keeps the platform's inventory-level webhook subscription pointed at this service.

`check_registration` is read-only. `ensure_registration` converges to exactly one
INVENTORY_LEVELS_UPDATE subscription whose callback is WEBHOOK_CALLBACK_URL.
"""

import logging
from typing import Any, Dict, Optional

from stocksync.core.config import Settings, get_settings
from stocksync.services.shopify.client import ShopifyGraphQLClient

logger = logging.getLogger(__name__)

WEBHOOK_TOPIC = "INVENTORY_LEVELS_UPDATE"


async def check_registration(client: ShopifyGraphQLClient, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    callback_url = settings.WEBHOOK_CALLBACK_URL

    subscriptions = await client.list_webhook_subscriptions(WEBHOOK_TOPIC)
    registered = any(sub.get("callbackUrl") == callback_url for sub in subscriptions)

    return {
        "topic": WEBHOOK_TOPIC,
        "callback_url": callback_url,
        "registered": bool(callback_url) and registered,
        "subscriptions": [
            {"id": sub.get("id"), "callback_url": sub.get("callbackUrl")}
            for sub in subscriptions
        ],
    }


async def ensure_registration(client: ShopifyGraphQLClient, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Create, repoint or leave alone the subscription. Extra subscriptions for the
    same topic are deleted so the platform never delivers each change twice.

    Returns {"action": "created" | "updated" | "unchanged", "subscription_id": ..., "deleted": [...]}
    """
    settings = settings or get_settings()
    callback_url = settings.WEBHOOK_CALLBACK_URL
    if not callback_url:
        raise ValueError("WEBHOOK_CALLBACK_URL must be set to register webhooks")

    subscriptions = await client.list_webhook_subscriptions(WEBHOOK_TOPIC)

    matching = [sub for sub in subscriptions if sub.get("callbackUrl") == callback_url]
    keep = matching[0] if matching else (subscriptions[0] if subscriptions else None)

    if keep is None:
        created = await client.create_webhook_subscription(WEBHOOK_TOPIC, callback_url)
        action = "created"
        subscription_id = (created or {}).get("id")
        logger.info(f"Created {WEBHOOK_TOPIC} webhook subscription {subscription_id} -> {callback_url}")
    elif keep.get("callbackUrl") != callback_url:
        updated = await client.update_webhook_subscription(keep["id"], callback_url)
        action = "updated"
        subscription_id = (updated or keep).get("id")
        logger.info(f"Repointed webhook subscription {subscription_id} from {keep.get('callbackUrl')} to {callback_url}")
    else:
        action = "unchanged"
        subscription_id = keep.get("id")
        logger.info(f"Webhook subscription {subscription_id} already points at {callback_url}")

    deleted = []
    for sub in subscriptions:
        if keep is not None and sub.get("id") == keep.get("id"):
            continue
        await client.delete_webhook_subscription(sub["id"])
        deleted.append(sub["id"])
        logger.info(f"Deleted duplicate webhook subscription {sub['id']} ({sub.get('callbackUrl')})")

    return {
        "action": action,
        "topic": WEBHOOK_TOPIC,
        "callback_url": callback_url,
        "subscription_id": subscription_id,
        "deleted": deleted,
    }
