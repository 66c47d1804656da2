# stocksync/services/inbound_sync.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings
from stocksync.core.enums import ReferenceType, RowOutcome, SyncAction, SyncSource
from stocksync.integrations.events import InventoryLevelUpdate
from stocksync.services.stock_ledger import RowResult, StockLedger

logger = logging.getLogger(__name__)


@dataclass
class InboundResult:
    """Per-row outcome of one inbound quantity notification."""
    external_item_ref: str
    external_location_ref: Optional[str]
    available: int
    rows: List[RowResult] = field(default_factory=list)

    @property
    def linked(self) -> bool:
        return bool(self.rows)

    def product_ids(self, *outcomes: RowOutcome) -> List[str]:
        return [row.product_id for row in self.rows if row.outcome in outcomes]

    @property
    def failed(self) -> List[RowResult]:
        return [row for row in self.rows if row.outcome == RowOutcome.FAILED]

    def summary(self) -> Dict[str, Any]:
        return {
            "status": "applied" if self.linked else "no_linked_product",
            "external_item_ref": self.external_item_ref,
            "external_location_ref": self.external_location_ref,
            "available": self.available,
            "updated": self.product_ids(RowOutcome.UPDATED),
            "unchanged": self.product_ids(RowOutcome.UNCHANGED),
            "skipped": self.product_ids(RowOutcome.SKIPPED),
            "failed": [{"product_id": row.product_id, "error": row.error} for row in self.failed],
        }


class InboundSyncHandler:
    """
    Applies an authoritative "available" value to every ledger row linked to the
    external item (and location, when the notification names one).

    Rows with sync disabled are skipped. A failure on one row is recorded on
    that row and does not stop the others.
    """

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.ledger = StockLedger(db, settings)

    async def apply(self, update: InventoryLevelUpdate, reference_id: Optional[str] = None) -> InboundResult:
        result = InboundResult(
            external_item_ref=update.external_item_ref,
            external_location_ref=update.external_location_ref,
            available=update.available,
        )

        rows = await self.ledger.find_linked(update.external_item_ref, update.external_location_ref)
        # Plain values only: a failed row rolls the session back and expires loaded objects
        targets = [(row.product_id, row.sync_enabled) for row in rows]

        if not targets:
            logger.info(
                f"No linked product for item {update.external_item_ref} "
                f"at location {update.external_location_ref or 'any'}"
            )
            return result

        for product_id, sync_enabled in targets:
            if not sync_enabled:
                logger.info(f"Skipping {product_id}: sync disabled")
                result.rows.append(RowResult(product_id, RowOutcome.SKIPPED))
                continue

            try:
                row_result = await self.ledger.apply_absolute(
                    product_id,
                    update.available,
                    action=SyncAction.INBOUND_UPDATE,
                    source=SyncSource.EXTERNAL_WEBHOOK,
                    reference_id=reference_id,
                    reference_type=ReferenceType.WEBHOOK.value,
                    created_by="webhook",
                )
            except Exception as e:
                logger.exception(f"Failed to apply inbound quantity to {product_id}: {e}")
                row_result = RowResult(product_id, RowOutcome.FAILED, error=str(e))
                await self._record_failure(product_id, str(e))

            result.rows.append(row_result)

        logger.info(
            f"Inbound update for item {update.external_item_ref}: "
            f"{len(result.product_ids(RowOutcome.UPDATED))} updated, "
            f"{len(result.product_ids(RowOutcome.UNCHANGED))} unchanged, "
            f"{len(result.product_ids(RowOutcome.SKIPPED))} skipped, {len(result.failed)} failed"
        )
        return result

    async def _record_failure(self, product_id: str, error: str):
        try:
            await self.ledger.mark_sync_error(product_id, error)
        except Exception as e:
            logger.error(f"Could not record sync error on {product_id}: {e}")
