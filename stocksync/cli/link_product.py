# stocksync/cli/link_product.py
import asyncio
import click

from stocksync.core.exceptions import ProductNotLinkedError
from stocksync.database import async_session
from stocksync.services.stock_ledger import StockLedger


async def run_link(product_id, item_ref, location_ref=None, enable_sync=True, session_factory=async_session):
    async with session_factory() as session:
        row = await StockLedger(session).link(
            product_id,
            external_item_ref=item_ref,
            external_location_ref=location_ref,
            enable_sync=enable_sync,
        )
        return {
            "product_id": row.product_id,
            "stock": row.stock,
            "external_item_ref": row.external_item_ref,
            "external_location_ref": row.external_location_ref,
            "sync_enabled": row.sync_enabled,
        }


@click.command("link")
@click.argument("product_id")
@click.option("--item", "item_ref", required=True, help="External inventory item id or GID")
@click.option("--location", "location_ref", default=None, help="External location id or GID (defaults to SHOPIFY_LOCATION_ID)")
@click.option("--no-sync", is_flag=True, help="Link without enabling sync")
def link_product(product_id, item_ref, location_ref, no_sync):
    """Link a product to an external inventory item and location"""
    try:
        row = asyncio.run(run_link(product_id, item_ref, location_ref, enable_sync=not no_sync))
    except ProductNotLinkedError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"Linked {row['product_id']} -> item {row['external_item_ref']} @ {row['external_location_ref']} "
        f"(stock {row['stock']}, sync {'on' if row['sync_enabled'] else 'off'})"
    )
