# stocksync/services/reconciliation_service.py
"""
Reconciliation sweep: re-read the authoritative quantity for every sync-enabled
product and overwrite local drift.

Used by the scheduler (source=scheduled_reconcile) and by the manual
pull-all / single-product endpoints (source=manual).

Each row is reconciled against its own fresh read: local stock, then the
platform quantity, then a write conditional on that local stock. If an inbound
update lands in between, the platform is read again and the write retried, up
to LEDGER_CAS_RETRIES times. Only when every attempt loses the race is the row
reported as superseded.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import ReferenceType, RowOutcome, SyncAction, SyncSource
from stocksync.core.exceptions import ProductNotLinkedError
from stocksync.core.utils import utc_now
from stocksync.integrations.base import InventoryPlatform
from stocksync.services.stock_ledger import RowResult, StockLedger

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Summary of one reconciliation run."""
    sync_run_id: str
    source: SyncSource
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[RowResult] = field(default_factory=list)

    def count(self, outcome: RowOutcome) -> int:
        return sum(1 for row in self.results if row.outcome == outcome)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "total": len(self.results),
            "updated": self.count(RowOutcome.UPDATED),
            "unchanged": self.count(RowOutcome.UNCHANGED),
            "skipped": self.count(RowOutcome.SKIPPED),
            "failed": self.count(RowOutcome.FAILED),
            "superseded": self.count(RowOutcome.SUPERSEDED),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_run_id": self.sync_run_id,
            "source": self.source.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            **self.summary,
            "results": [row.to_dict() for row in self.results],
        }


class ReconciliationSweep:
    def __init__(self, db: AsyncSession, platform: InventoryPlatform, settings: Optional[Settings] = None):
        self.db = db
        self.platform = platform
        self.settings = settings or get_settings()
        self.ledger = StockLedger(db, self.settings)

    async def run(self, source: SyncSource = SyncSource.SCHEDULED_RECONCILE, created_by: str = "scheduler") -> SweepReport:
        report = SweepReport(sync_run_id=str(uuid.uuid4()), source=source, started_at=utc_now())
        logger.info(f"=== RECONCILIATION SWEEP {report.sync_run_id} STARTING ({source.value}) ===")

        # Only the ids: stock is re-read per row right before its platform read
        product_ids = [row.product_id for row in await self.ledger.list_sync_enabled()]

        for product_id in product_ids:
            result = await self._reconcile_row(product_id, source, report.sync_run_id, created_by)
            report.results.append(result)

        report.finished_at = utc_now()
        summary = report.summary
        logger.info(
            f"Reconciliation sweep {report.sync_run_id} finished: {summary['total']} products, "
            f"{summary['updated']} updated, {summary['unchanged']} unchanged, {summary['skipped']} skipped, "
            f"{summary['superseded']} superseded, {summary['failed']} failed"
        )
        return report

    async def reconcile_product(
        self,
        product_id: str,
        source: SyncSource = SyncSource.MANUAL,
        created_by: Optional[str] = None,
    ) -> RowResult:
        """Pull one product's authoritative quantity now."""
        row = await self.ledger.get_or_raise(product_id)
        if not row.is_linked:
            raise ProductNotLinkedError(f"Product {product_id} is not linked to an external item and location")
        if not row.sync_enabled:
            raise ProductNotLinkedError(f"Sync is disabled for product {product_id}")

        return await self._reconcile_row(product_id, source, str(uuid.uuid4()), created_by)

    async def _reconcile_row(
        self,
        product_id: str,
        source: SyncSource,
        sync_run_id: str,
        created_by: Optional[str],
    ) -> RowResult:
        attempts = max(1, self.settings.LEDGER_CAS_RETRIES)
        result = None

        for attempt in range(1, attempts + 1):
            row = await self.ledger.get(product_id)
            if row is None or not row.sync_enabled:
                logger.info(f"Skipping {product_id}: sync disabled or row removed since the sweep started")
                return RowResult(product_id, RowOutcome.SKIPPED)

            # Plain values: a lost compare-and-swap rolls back and expires the row
            item_ref, location_ref, stock = row.external_item_ref, row.external_location_ref, row.stock

            if not item_ref or not location_ref:
                error = "Sync enabled but external item or location is missing"
                await self._record_failure(product_id, error)
                return RowResult(product_id, RowOutcome.FAILED, old_stock=stock, error=error)

            try:
                available = await asyncio.wait_for(
                    self.platform.get_available(item_ref, location_ref),
                    timeout=self.settings.EXTERNAL_TIMEOUT_SECONDS,
                )
            except asyncio.TimeoutError:
                error = f"Quantity query timed out after {self.settings.EXTERNAL_TIMEOUT_SECONDS}s"
                await self._record_failure(product_id, error)
                return RowResult(product_id, RowOutcome.FAILED, old_stock=stock, error=error)
            except Exception as e:
                logger.error(f"Could not read authoritative quantity for {product_id}: {e}")
                await self._record_failure(product_id, f"reconcile failed: {e}")
                return RowResult(product_id, RowOutcome.FAILED, old_stock=stock, error=str(e))

            try:
                result = await self.ledger.apply_absolute(
                    product_id,
                    available,
                    action=SyncAction.RECONCILE,
                    source=source,
                    reference_id=sync_run_id,
                    reference_type=ReferenceType.SYNC_RUN.value,
                    created_by=created_by,
                    expected_stock=stock,
                )
            except Exception as e:
                logger.exception(f"Failed to reconcile {product_id}: {e}")
                await self._record_failure(product_id, f"reconcile failed: {e}")
                return RowResult(product_id, RowOutcome.FAILED, old_stock=stock, error=str(e))

            if result.outcome != RowOutcome.SUPERSEDED:
                return result
            logger.info(f"Ledger for {product_id} moved during reconcile; re-reading platform (attempt {attempt}/{attempts})")

        logger.warning(f"Reconcile of {product_id} kept losing to concurrent updates after {attempts} attempts")
        return result

    async def _record_failure(self, product_id: str, error: str):
        try:
            await self.ledger.mark_sync_error(product_id, error)
        except Exception as e:
            logger.error(f"Could not record sync error on {product_id}: {e}")
