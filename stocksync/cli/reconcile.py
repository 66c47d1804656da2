# stocksync/cli/reconcile.py
import asyncio
import logging
import click
from datetime import datetime

from stocksync.core.enums import SyncSource
from stocksync.core.exceptions import InventorySyncError
from stocksync.core.logging_config import configure_logging
from stocksync.database import async_session
from stocksync.dependencies import get_inventory_platform
from stocksync.services.reconciliation_service import ReconciliationSweep

logger = logging.getLogger(__name__)


async def run_reconcile(product_id=None, platform=None, session_factory=async_session):
    """Reconcile one product, or sweep every sync-enabled product."""
    platform = platform or get_inventory_platform()
    async with session_factory() as session:
        sweep = ReconciliationSweep(session, platform)
        if product_id:
            result = await sweep.reconcile_product(product_id, source=SyncSource.MANUAL, created_by="cli")
            return {"total": 1, result.outcome.value: 1, "results": [result.to_dict()]}
        report = await sweep.run(source=SyncSource.MANUAL, created_by="cli")
        return report.to_dict()


@click.command("reconcile")
@click.option("--product-id", default=None, help="Reconcile a single product instead of all sync-enabled products")
def reconcile(product_id):
    """Pull authoritative quantities from the platform into the ledger"""
    configure_logging()

    start_time = datetime.now()
    logger.info(f"Starting reconciliation at {start_time}")
    try:
        report = asyncio.run(run_reconcile(product_id))
    except InventorySyncError as e:
        raise click.ClickException(str(e))

    click.echo(f"\nReconciliation completed in {datetime.now() - start_time}")
    for key in ("total", "updated", "unchanged", "skipped", "superseded", "failed"):
        click.echo(f"{key.capitalize()}: {report.get(key, 0)}")
    for row in report["results"]:
        if row["error"]:
            click.echo(f"  {row['product_id']}: {row['error']}")
