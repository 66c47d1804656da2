"""
Core module exports.
"""
from .enums import (
    SyncAction,
    SyncSource,
    ReferenceType,
    AdjustmentReason,
    ClaimStatus,
    RowOutcome,
    NegativeStockPolicy,
)

from .exceptions import (
    InventorySyncError,
    SignatureInvalidError,
    MalformedPayloadError,
    InventoryNotFoundError,
    ProductNotLinkedError,
    ExternalAPIError,
    ShopifyAPIError,
    ShopifyGraphQLError,
    NegativeStockAttemptError,
    StockConflictError,
)
