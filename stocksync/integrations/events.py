"""
Data structures exchanged with the external inventory platform.

InventoryLevelUpdate is the normalised body of an inbound "quantity changed"
notification: an absolute `available` value for one item at one location.
AdjustmentResult is what the platform reports back for an outbound delta.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import AliasChoices, BaseModel, Field, StrictInt, field_validator

from stocksync.core.utils import normalize_gid


class InventoryLevelUpdate(BaseModel):
    external_item_ref: str = Field(validation_alias=AliasChoices("inventory_item_id", "external_item_ref"))
    external_location_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("location_id", "external_location_ref"),
    )
    available: StrictInt
    updated_at: Optional[datetime] = None

    @field_validator("external_item_ref", mode="before")
    @classmethod
    def _normalize_item(cls, value: Any) -> str:
        normalized = normalize_gid(value)
        if not normalized:
            raise ValueError("inventory item reference is required")
        return normalized

    @field_validator("external_location_ref", mode="before")
    @classmethod
    def _normalize_location(cls, value: Any) -> Optional[str]:
        return normalize_gid(value)


class AdjustmentResult(BaseModel):
    success: bool
    new_quantity: Optional[int] = None
    error: Optional[str] = None
