# stocksync/cli/webhooks.py
import asyncio
import click

from stocksync.core.exceptions import ExternalAPIError
from stocksync.dependencies import get_shopify_client
from stocksync.services.shopify.webhook_registration import check_registration, ensure_registration


@click.command("check-webhooks")
def check_webhooks():
    """Show whether the inventory webhook points at WEBHOOK_CALLBACK_URL"""
    try:
        status = asyncio.run(check_registration(get_shopify_client()))
    except ExternalAPIError as e:
        raise click.ClickException(str(e))

    click.echo(f"Topic: {status['topic']}")
    click.echo(f"Callback URL: {status['callback_url'] or '(not configured)'}")
    click.echo(f"Registered: {'yes' if status['registered'] else 'no'}")
    for sub in status["subscriptions"]:
        click.echo(f"  {sub['id']} -> {sub['callback_url']}")


@click.command("ensure-webhooks")
def ensure_webhooks():
    """Create or repoint the inventory webhook subscription"""
    try:
        result = asyncio.run(ensure_registration(get_shopify_client()))
    except (ValueError, ExternalAPIError) as e:
        raise click.ClickException(str(e))

    click.echo(f"{result['action'].capitalize()} subscription {result['subscription_id']} -> {result['callback_url']}")
    if result["deleted"]:
        click.echo(f"Deleted duplicates: {', '.join(result['deleted'])}")
