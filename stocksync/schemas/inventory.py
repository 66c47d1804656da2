"""
Schemas for the ledger, availability check and deduct/restore endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field, StrictInt

from stocksync.core.enums import AdjustmentReason
from stocksync.schemas.base import BaseSchema, TimestampedSchema


class InventoryRead(TimestampedSchema):
    product_id: str
    stock: int
    external_product_ref: Optional[str] = None
    external_variant_ref: Optional[str] = None
    external_item_ref: Optional[str] = None
    external_location_ref: Optional[str] = None
    sync_enabled: bool
    last_synced_at: Optional[datetime] = None
    sync_error: Optional[str] = None


class LinkRequest(BaseSchema):
    external_item_ref: str
    external_location_ref: Optional[str] = None
    external_product_ref: Optional[str] = None
    external_variant_ref: Optional[str] = None
    sync_enabled: bool = True


class SyncLogEntryRead(BaseSchema):
    id: int
    product_id: str
    action: str
    source: str
    change: int
    stock_after: int
    external_confirmed: Optional[bool] = None
    error: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


# --- Availability check ---

class StockCheckItem(BaseSchema):
    product_id: str
    requested_quantity: StrictInt = Field(ge=0)


class StockCheckRequest(BaseSchema):
    products: List[StockCheckItem] = Field(min_length=1)


class StockCheckResult(BaseSchema):
    product_id: str
    available: int
    requested: int
    sufficient: bool
    error: Optional[str] = None


class StockCheckResponse(BaseSchema):
    items: List[StockCheckResult]


# --- Deduct / restore ---

class AdjustmentItem(BaseSchema):
    product_id: str
    quantity: StrictInt  # non-positive values fail per item in the orchestrator
    reason: Optional[AdjustmentReason] = None
    reference_id: Optional[str] = None


class AdjustmentBatchRequest(BaseSchema):
    products: List[AdjustmentItem] = Field(min_length=1)
    reference_id: Optional[str] = None  # invoice id, applied to items without their own
    created_by: Optional[str] = None


class AdjustmentItemResult(BaseSchema):
    product_id: str
    success: bool
    new_quantity: Optional[int] = None
    error: Optional[str] = None


class AdjustmentBatchResponse(BaseSchema):
    success: bool
    results: List[AdjustmentItemResult]
