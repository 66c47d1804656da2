# stocksync/services/adjustment_orchestrator.py
"""
Outbound stock adjustments triggered by the invoice lifecycle.

Deduct (invoice created) and restore (invoice voided) send a signed delta to the
external platform for each product. The local ledger is NOT written here: the
platform applies the delta and reports the new absolute quantity back through
the inbound webhook, and the reconciliation sweep catches anything that never
arrives.

Each item succeeds or fails on its own. Results come back in request order with
`success` true only when every item succeeded.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import AdjustmentReason, ReferenceType, SyncAction, SyncSource
from stocksync.core.exceptions import ExternalAPIError
from stocksync.integrations.base import InventoryPlatform
from stocksync.integrations.events import AdjustmentResult
from stocksync.services.audit_log import AuditLogger
from stocksync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentRequest:
    product_id: str
    quantity: int
    reason: Optional[str] = None
    reference_id: Optional[str] = None


@dataclass
class ItemResult:
    product_id: str
    success: bool
    new_quantity: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "success": self.success,
            "new_quantity": self.new_quantity,
            "error": self.error,
        }


@dataclass
class BatchResult:
    results: List[ItemResult] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(item.success for item in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.all_succeeded,
            "results": [item.to_dict() for item in self.results],
        }


@dataclass
class _PlannedAdjustment:
    index: int
    product_id: str
    item_ref: str
    location_ref: str
    delta: int
    reason: str
    reference_id: Optional[str]


@dataclass
class AvailabilityItem:
    product_id: str
    requested: int
    available: int = 0
    sufficient: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "product_id": self.product_id,
            "available": self.available,
            "requested": self.requested,
            "sufficient": self.sufficient,
        }
        if self.error:
            data["error"] = self.error
        return data


class AdjustmentOrchestrator:
    def __init__(self, db: AsyncSession, platform: InventoryPlatform, settings: Optional[Settings] = None):
        self.db = db
        self.platform = platform
        self.settings = settings or get_settings()
        self.ledger = StockLedger(db, self.settings)
        self.audit = AuditLogger(db)

    async def deduct(
        self,
        items: List[AdjustmentRequest],
        reference_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> BatchResult:
        """Invoice created: request -quantity for every item."""
        return await self._adjust(
            items,
            sign=-1,
            action=SyncAction.DEDUCT,
            source=SyncSource.INVOICE_CREATED,
            default_reason=AdjustmentReason.CORRECTION.value,
            reference_id=reference_id,
            created_by=created_by,
        )

    async def restore(
        self,
        items: List[AdjustmentRequest],
        reference_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> BatchResult:
        """Invoice voided: request +quantity for every item."""
        return await self._adjust(
            items,
            sign=1,
            action=SyncAction.RESTORE,
            source=SyncSource.INVOICE_VOIDED,
            default_reason=AdjustmentReason.RESTOCK.value,
            reference_id=reference_id,
            created_by=created_by,
        )

    async def _adjust(
        self,
        items: List[AdjustmentRequest],
        sign: int,
        action: SyncAction,
        source: SyncSource,
        default_reason: str,
        reference_id: Optional[str],
        created_by: Optional[str],
    ) -> BatchResult:
        results: List[Optional[ItemResult]] = [None] * len(items)
        plans: List[_PlannedAdjustment] = []

        # Resolve links first; only linked, sync-enabled rows reach the platform
        for index, item in enumerate(items):
            if item.quantity is None or item.quantity <= 0:
                results[index] = ItemResult(item.product_id, False, error="Quantity must be a positive integer")
                continue

            row = await self.ledger.get(item.product_id)
            if row is None:
                results[index] = ItemResult(item.product_id, False, error="Product has no inventory record")
                continue
            if not row.is_linked:
                error = "Product is not linked to an external item and location"
                results[index] = ItemResult(item.product_id, False, error=error)
                await self.ledger.mark_sync_error(item.product_id, f"{action.value} failed: {error}")
                continue
            if not row.sync_enabled:
                error = "Sync is disabled for this product"
                results[index] = ItemResult(item.product_id, False, error=error)
                await self.ledger.mark_sync_error(item.product_id, f"{action.value} failed: {error}")
                continue

            plans.append(
                _PlannedAdjustment(
                    index=index,
                    product_id=item.product_id,
                    item_ref=row.external_item_ref,
                    location_ref=row.external_location_ref,
                    delta=sign * item.quantity,
                    reason=item.reason or default_reason,
                    reference_id=item.reference_id or reference_id,
                )
            )

        outcomes = await self._call_platform(plans)

        for plan, outcome in zip(plans, outcomes):
            await self._record(plan, outcome, action, source, created_by)
            results[plan.index] = ItemResult(
                plan.product_id,
                outcome.success,
                new_quantity=outcome.new_quantity,
                error=outcome.error,
            )

        batch = BatchResult(results=results)
        failed = [item.product_id for item in batch.results if not item.success]
        if failed:
            logger.warning(
                f"{action.value} for {reference_id or 'no reference'}: {len(failed)}/{len(items)} items failed ({', '.join(failed)})"
            )
        else:
            logger.info(f"{action.value} for {reference_id or 'no reference'}: all {len(items)} items confirmed")
        return batch

    async def _call_platform(self, plans: List[_PlannedAdjustment]) -> List[AdjustmentResult]:
        """Issue the adjustments concurrently, each with its own timeout."""
        semaphore = asyncio.Semaphore(max(1, self.settings.MAX_CONCURRENT_EXTERNAL_CALLS))
        timeout = self.settings.ADJUSTMENT_TIMEOUT_SECONDS

        async def call(plan: _PlannedAdjustment) -> AdjustmentResult:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        self.platform.adjust_available(plan.item_ref, plan.location_ref, plan.delta, plan.reason),
                        timeout=timeout,
                    )
                except asyncio.TimeoutError:
                    logger.error(f"Adjustment of {plan.delta} for {plan.product_id} timed out after {timeout}s")
                    return AdjustmentResult(success=False, error=f"Timed out after {timeout}s")
                except ExternalAPIError as e:
                    logger.error(f"Adjustment of {plan.delta} for {plan.product_id} failed: {e}")
                    return AdjustmentResult(success=False, error=str(e))
                except Exception as e:
                    logger.exception(f"Unexpected error adjusting {plan.product_id}: {e}")
                    return AdjustmentResult(success=False, error=f"Unexpected error: {e}")

        return list(await asyncio.gather(*(call(plan) for plan in plans)))

    async def _record(
        self,
        plan: _PlannedAdjustment,
        outcome: AdjustmentResult,
        action: SyncAction,
        source: SyncSource,
        created_by: Optional[str],
    ):
        try:
            await self.audit.record(
                product_id=plan.product_id,
                action=action,
                source=source,
                change=plan.delta,
                stock_after=await self.ledger.current_stock(plan.product_id),
                reference_id=plan.reference_id,
                reference_type=ReferenceType.INVOICE.value if plan.reference_id else None,
                created_by=created_by,
                external_confirmed=outcome.success,
                error=outcome.error,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not write {action.value} audit entry for {plan.product_id}: {e}")

        if not outcome.success:
            await self.ledger.mark_sync_error(plan.product_id, f"{action.value} failed: {outcome.error}")

    async def check_availability(self, requests: List[Dict[str, Any]]) -> List[AvailabilityItem]:
        """
        Live stock check before an invoice is created.

        Linked, sync-enabled products are checked against the platform; rows with
        sync disabled report the ledger value.
        """
        semaphore = asyncio.Semaphore(max(1, self.settings.MAX_CONCURRENT_EXTERNAL_CALLS))
        items: List[AvailabilityItem] = []
        lookups = []

        for request in requests:
            item = AvailabilityItem(product_id=request["product_id"], requested=request["requested_quantity"])
            items.append(item)

            row = await self.ledger.get(item.product_id)
            if row is None:
                item.error = "Product has no inventory record"
            elif not row.is_linked:
                item.error = "Product is not linked to an external item and location"
            elif not row.sync_enabled:
                item.available = row.stock
            else:
                lookups.append((item, row.external_item_ref, row.external_location_ref, row.stock))

        async def lookup(item: AvailabilityItem, item_ref: str, location_ref: str, ledger_stock: int):
            async with semaphore:
                try:
                    item.available = await asyncio.wait_for(
                        self.platform.get_available(item_ref, location_ref),
                        timeout=self.settings.EXTERNAL_TIMEOUT_SECONDS,
                    )
                except asyncio.TimeoutError:
                    item.available = ledger_stock
                    item.error = "Live quantity query timed out"
                except ExternalAPIError as e:
                    item.available = ledger_stock
                    item.error = f"Live quantity query failed: {e}"
                except Exception as e:
                    logger.exception(f"Unexpected error checking availability of {item.product_id}: {e}")
                    item.available = ledger_stock
                    item.error = f"Live quantity query failed: {e}"

        await asyncio.gather(*(lookup(*args) for args in lookups))

        for item in items:
            item.sufficient = item.error is None and item.available >= item.requested
        return items
