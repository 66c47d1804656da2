# stocksync/routes/sync.py
"""
Billing-facing deduct/restore, plus manual reconciliation.

Deduct and restore always answer 200 with per-item results; callers decide what
a partial failure means for the invoice.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import SyncSource
from stocksync.core.exceptions import InventoryNotFoundError, ProductNotLinkedError
from stocksync.dependencies import get_db, get_inventory_platform
from stocksync.integrations.base import InventoryPlatform
from stocksync.scheduler import get_scheduler_status
from stocksync.schemas.inventory import AdjustmentBatchRequest, AdjustmentBatchResponse
from stocksync.schemas.sync import RowResultRead, SweepReportRead
from stocksync.services.adjustment_orchestrator import AdjustmentOrchestrator, AdjustmentRequest
from stocksync.services.reconciliation_service import ReconciliationSweep

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


def _to_requests(request: AdjustmentBatchRequest):
    return [
        AdjustmentRequest(
            product_id=item.product_id,
            quantity=item.quantity,
            reason=item.reason.value if item.reason else None,
            reference_id=item.reference_id,
        )
        for item in request.products
    ]


@router.post("/deduct", response_model=AdjustmentBatchResponse)
async def deduct_stock(
    request: AdjustmentBatchRequest,
    db: AsyncSession = Depends(get_db),
    platform: InventoryPlatform = Depends(get_inventory_platform),
    settings: Settings = Depends(get_settings),
):
    """Invoice created"""
    orchestrator = AdjustmentOrchestrator(db, platform, settings)
    result = await orchestrator.deduct(
        _to_requests(request),
        reference_id=request.reference_id,
        created_by=request.created_by or "billing",
    )
    return result.to_dict()


@router.post("/restore", response_model=AdjustmentBatchResponse)
async def restore_stock(
    request: AdjustmentBatchRequest,
    db: AsyncSession = Depends(get_db),
    platform: InventoryPlatform = Depends(get_inventory_platform),
    settings: Settings = Depends(get_settings),
):
    """Invoice voided"""
    orchestrator = AdjustmentOrchestrator(db, platform, settings)
    result = await orchestrator.restore(
        _to_requests(request),
        reference_id=request.reference_id,
        created_by=request.created_by or "billing",
    )
    return result.to_dict()


@router.post("/pull-all", response_model=SweepReportRead)
async def pull_all(
    db: AsyncSession = Depends(get_db),
    platform: InventoryPlatform = Depends(get_inventory_platform),
    settings: Settings = Depends(get_settings),
):
    """Run the reconciliation sweep now."""
    report = await ReconciliationSweep(db, platform, settings).run(source=SyncSource.MANUAL, created_by="manual")
    return report.to_dict()


@router.get("/scheduler")
async def scheduler_status():
    return await get_scheduler_status()


@router.post("/{product_id}", response_model=RowResultRead)
async def reconcile_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    platform: InventoryPlatform = Depends(get_inventory_platform),
    settings: Settings = Depends(get_settings),
):
    """Pull one product's authoritative quantity now."""
    sweep = ReconciliationSweep(db, platform, settings)
    try:
        result = await sweep.reconcile_product(product_id, source=SyncSource.MANUAL, created_by="manual")
    except InventoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProductNotLinkedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()
