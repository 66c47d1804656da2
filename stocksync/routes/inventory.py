# stocksync/routes/inventory.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.exceptions import InventoryNotFoundError, ProductNotLinkedError
from stocksync.dependencies import get_db, get_inventory_platform
from stocksync.integrations.base import InventoryPlatform
from stocksync.schemas.inventory import (
    InventoryRead,
    LinkRequest,
    StockCheckRequest,
    StockCheckResponse,
    SyncLogEntryRead,
)
from stocksync.services.adjustment_orchestrator import AdjustmentOrchestrator
from stocksync.services.audit_log import AuditLogger
from stocksync.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/check", response_model=StockCheckResponse)
async def check_stock(
    request: StockCheckRequest,
    db: AsyncSession = Depends(get_db),
    platform: InventoryPlatform = Depends(get_inventory_platform),
    settings: Settings = Depends(get_settings),
):
    """Availability check used by billing before an invoice is created."""
    orchestrator = AdjustmentOrchestrator(db, platform, settings)
    items = await orchestrator.check_availability([item.model_dump() for item in request.products])
    return {"items": [item.to_dict() for item in items]}


@router.get("/{product_id}", response_model=InventoryRead)
async def get_inventory(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        row = await StockLedger(db, settings).get_or_raise(product_id)
    except InventoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InventoryRead.from_orm_model(row)


@router.put("/{product_id}/link", response_model=InventoryRead)
async def link_inventory(
    product_id: str,
    request: LinkRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Link a product to an external item/location and (by default) enable sync."""
    try:
        row = await StockLedger(db, settings).link(
            product_id,
            external_item_ref=request.external_item_ref,
            external_location_ref=request.external_location_ref,
            external_product_ref=request.external_product_ref,
            external_variant_ref=request.external_variant_ref,
            enable_sync=request.sync_enabled,
        )
    except ProductNotLinkedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return InventoryRead.from_orm_model(row)


@router.post("/{product_id}/disable-sync", response_model=InventoryRead)
async def disable_inventory_sync(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        row = await StockLedger(db, settings).disable_sync(product_id)
    except InventoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InventoryRead.from_orm_model(row)


@router.get("/{product_id}/sync-log", response_model=List[SyncLogEntryRead])
async def get_sync_log(
    product_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    entries = await AuditLogger(db).list_for_product(product_id, limit=limit, offset=offset)
    return SyncLogEntryRead.from_orm_list(entries)
