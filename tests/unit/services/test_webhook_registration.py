from unittest.mock import AsyncMock

import pytest

from stocksync.services.shopify.webhook_registration import check_registration, ensure_registration

CALLBACK = "https://sync.example.com/webhooks/inventory-update"


@pytest.fixture
def shopify_client(mocker):
    client = mocker.Mock()
    client.list_webhook_subscriptions = AsyncMock(return_value=[])
    client.create_webhook_subscription = AsyncMock(return_value={"id": "gid://shopify/WebhookSubscription/9"})
    client.update_webhook_subscription = AsyncMock(side_effect=lambda sub_id, url: {"id": sub_id, "callbackUrl": url})
    client.delete_webhook_subscription = AsyncMock(side_effect=lambda sub_id: sub_id)
    return client


async def test_check_reports_registered(shopify_client, settings):
    shopify_client.list_webhook_subscriptions.return_value = [{"id": "1", "callbackUrl": CALLBACK}]

    status = await check_registration(shopify_client, settings)

    assert status["registered"] is True
    assert status["subscriptions"] == [{"id": "1", "callback_url": CALLBACK}]


async def test_check_reports_missing(shopify_client, settings):
    shopify_client.list_webhook_subscriptions.return_value = [{"id": "1", "callbackUrl": "https://old.example.com"}]

    assert (await check_registration(shopify_client, settings))["registered"] is False


async def test_ensure_creates_when_absent(shopify_client, settings):
    result = await ensure_registration(shopify_client, settings)

    assert result["action"] == "created"
    assert result["subscription_id"] == "gid://shopify/WebhookSubscription/9"
    shopify_client.create_webhook_subscription.assert_awaited_once_with("INVENTORY_LEVELS_UPDATE", CALLBACK)


async def test_ensure_repoints_wrong_url(shopify_client, settings):
    shopify_client.list_webhook_subscriptions.return_value = [{"id": "1", "callbackUrl": "https://old.example.com"}]

    result = await ensure_registration(shopify_client, settings)

    assert result["action"] == "updated"
    shopify_client.update_webhook_subscription.assert_awaited_once_with("1", CALLBACK)
    shopify_client.create_webhook_subscription.assert_not_awaited()


async def test_ensure_leaves_correct_subscription_and_deletes_duplicates(shopify_client, settings):
    shopify_client.list_webhook_subscriptions.return_value = [
        {"id": "1", "callbackUrl": "https://old.example.com"},
        {"id": "2", "callbackUrl": CALLBACK},
        {"id": "3", "callbackUrl": CALLBACK},
    ]

    result = await ensure_registration(shopify_client, settings)

    assert result["action"] == "unchanged"
    assert result["subscription_id"] == "2"
    assert result["deleted"] == ["1", "3"]
    shopify_client.update_webhook_subscription.assert_not_awaited()


async def test_ensure_requires_callback_url(shopify_client, settings):
    settings.WEBHOOK_CALLBACK_URL = ""

    with pytest.raises(ValueError):
        await ensure_registration(shopify_client, settings)
