"""
Shared enums and constants used across the application.
"""

from enum import Enum


class SyncAction(str, Enum):
    """What happened to a ledger row, as recorded in the sync log"""
    INBOUND_UPDATE = "inbound_update"
    DEDUCT = "deduct"
    RESTORE = "restore"
    RECONCILE = "reconcile"


class SyncSource(str, Enum):
    """Why it happened"""
    EXTERNAL_WEBHOOK = "external_webhook"
    INVOICE_CREATED = "invoice_created"
    INVOICE_VOIDED = "invoice_voided"
    SCHEDULED_RECONCILE = "scheduled_reconcile"
    MANUAL = "manual"


class ReferenceType(str, Enum):
    INVOICE = "invoice"
    WEBHOOK = "webhook"
    SYNC_RUN = "sync_run"


class AdjustmentReason(str, Enum):
    """Adjustment reasons accepted by the Shopify inventory API"""
    CORRECTION = "correction"
    RECEIVED = "received"
    RESTOCK = "restock"
    SHRINKAGE = "shrinkage"
    SAFETY_STOCK = "safety_stock"
    DAMAGED = "damaged"
    PROMOTION = "promotion"
    QUALITY_CONTROL = "quality_control"
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_DELETED = "reservation_deleted"
    RESERVATION_UPDATED = "reservation_updated"


class ClaimStatus(str, Enum):
    """Result of trying to claim an inbound event id"""
    CLAIMED = "claimed"
    DUPLICATE = "duplicate"


class RowOutcome(str, Enum):
    """Per-row result of applying an authoritative quantity"""
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"      # sync disabled, benign
    SUPERSEDED = "superseded"  # ledger moved underneath us, concurrent value kept
    FAILED = "failed"


class NegativeStockPolicy(str, Enum):
    """How the ledger treats a quantity below zero"""
    CLAMP = "clamp"
    REJECT = "reject"


INVENTORY_LEVELS_UPDATE_TOPIC = "inventory_levels/update"
