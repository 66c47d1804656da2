# stocksync/services/stock_ledger.py
"""
The local stock ledger.

All writes to ProductInventory.stock go through `StockLedger.apply_absolute`:

- the new value is an absolute quantity reported by the external platform
- the negative-stock policy is applied once, here, for every caller
- the write is a compare-and-swap (UPDATE ... WHERE stock = :expected), retried
  a bounded number of times when another flow moved the row first
- the matching SyncLogEntry is written in the same transaction, so a committed
  stock change always has exactly one audit row with the same stock_after

Nothing here reads a value, computes in Python and blindly writes it back.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import NegativeStockPolicy, RowOutcome, SyncAction, SyncSource
from stocksync.core.exceptions import (
    InventoryNotFoundError,
    NegativeStockAttemptError,
    ProductNotLinkedError,
    StockConflictError,
)
from stocksync.core.utils import normalize_gid, utc_now
from stocksync.models.inventory import ProductInventory
from stocksync.services.audit_log import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class RowResult:
    product_id: str
    outcome: RowOutcome
    old_stock: Optional[int] = None
    new_stock: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != RowOutcome.FAILED

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "outcome": self.outcome.value,
            "old_stock": self.old_stock,
            "new_stock": self.new_stock,
            "error": self.error,
        }


class StockLedger:
    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.audit = AuditLogger(db)

    # --- Reads ---

    async def get(self, product_id: str) -> Optional[ProductInventory]:
        stmt = (
            select(ProductInventory)
            .where(ProductInventory.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, product_id: str) -> ProductInventory:
        row = await self.get(product_id)
        if row is None:
            raise InventoryNotFoundError(f"No inventory record for product {product_id}")
        return row

    async def find_linked(self, item_ref: str, location_ref: Optional[str] = None) -> List[ProductInventory]:
        """
        Every row linked to an external item. With a location, only rows linked
        to that item at that location.
        """
        stmt = select(ProductInventory).where(ProductInventory.external_item_ref == item_ref)
        if location_ref:
            stmt = stmt.where(ProductInventory.external_location_ref == location_ref)
        stmt = stmt.order_by(ProductInventory.product_id).execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_sync_enabled(self) -> List[ProductInventory]:
        stmt = (
            select(ProductInventory)
            .where(ProductInventory.sync_enabled.is_(True))
            .order_by(ProductInventory.product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def current_stock(self, product_id: str) -> int:
        result = await self.db.execute(
            select(ProductInventory.stock).where(ProductInventory.product_id == product_id)
        )
        stock = result.scalar_one_or_none()
        if stock is None:
            raise InventoryNotFoundError(f"No inventory record for product {product_id}")
        return stock

    # --- Link management ---

    async def link(
        self,
        product_id: str,
        external_item_ref: str,
        external_location_ref: Optional[str] = None,
        external_product_ref: Optional[str] = None,
        external_variant_ref: Optional[str] = None,
        enable_sync: bool = True,
    ) -> ProductInventory:
        """
        Link a product to an external item/location, creating its ledger row
        (stock 0) on first link. A missing location falls back to
        SHOPIFY_LOCATION_ID.
        """
        item_ref = normalize_gid(external_item_ref)
        location_ref = normalize_gid(external_location_ref) or normalize_gid(self.settings.SHOPIFY_LOCATION_ID)

        if enable_sync and not (item_ref and location_ref):
            raise ProductNotLinkedError(
                f"Product {product_id} needs both an external item and a location before sync can be enabled"
            )

        row = await self.get(product_id)
        if row is None:
            row = ProductInventory(product_id=product_id, stock=0)
            self.db.add(row)
            logger.info(f"Created inventory record for product {product_id}")

        row.external_item_ref = item_ref
        row.external_location_ref = location_ref
        if external_product_ref is not None:
            row.external_product_ref = normalize_gid(external_product_ref)
        if external_variant_ref is not None:
            row.external_variant_ref = normalize_gid(external_variant_ref)
        row.sync_enabled = enable_sync

        await self.db.commit()
        logger.info(
            f"Linked product {product_id} to item {item_ref} at location {location_ref} "
            f"(sync_enabled={enable_sync})"
        )
        return row

    async def set_sync_enabled(self, product_id: str, enabled: bool) -> ProductInventory:
        row = await self.get_or_raise(product_id)
        if enabled and not row.is_linked:
            raise ProductNotLinkedError(f"Product {product_id} is not linked to an external item and location")
        row.sync_enabled = enabled
        await self.db.commit()
        logger.info(f"Sync {'enabled' if enabled else 'disabled'} for product {product_id}")
        return row

    async def disable_sync(self, product_id: str) -> ProductInventory:
        return await self.set_sync_enabled(product_id, False)

    # --- Mutations ---

    def enforce_stock_policy(self, product_id: str, quantity: int) -> int:
        """The one place that decides what a negative quantity becomes."""
        if quantity >= 0:
            return quantity
        if self.settings.NEGATIVE_STOCK_POLICY == NegativeStockPolicy.REJECT:
            raise NegativeStockAttemptError(product_id, quantity)
        logger.warning(f"Clamping negative quantity {quantity} to 0 for product {product_id}")
        return 0

    async def apply_absolute(
        self,
        product_id: str,
        available: int,
        action: SyncAction,
        source: SyncSource,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        created_by: Optional[str] = None,
        expected_stock: Optional[int] = None,
    ) -> RowResult:
        """
        Set stock to an authoritative absolute value and commit it with its audit entry.

        With `expected_stock` the write only happens if the row still holds that
        value; otherwise it returns SUPERSEDED and keeps the concurrent value.
        Without it, a lost compare-and-swap is retried against a fresh read.

        Raises:
            NegativeStockAttemptError: reject policy and a negative quantity
            InventoryNotFoundError: no row for product_id
            StockConflictError: LEDGER_CAS_RETRIES exhausted
        """
        new_stock = self.enforce_stock_policy(product_id, available)
        attempts = max(1, self.settings.LEDGER_CAS_RETRIES)

        for attempt in range(1, attempts + 1):
            try:
                if expected_stock is not None:
                    current = expected_stock
                else:
                    current = await self.current_stock(product_id)

                values = {"last_synced_at": utc_now(), "sync_error": None}
                if new_stock != current:
                    values["stock"] = new_stock

                stmt = (
                    update(ProductInventory)
                    .where(
                        ProductInventory.product_id == product_id,
                        ProductInventory.stock == current,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                result = await self.db.execute(stmt)

                if result.rowcount == 1:
                    if new_stock == current:
                        await self.db.commit()
                        logger.debug(f"Stock for {product_id} already {new_stock}")
                        return RowResult(product_id, RowOutcome.UNCHANGED, current, new_stock)

                    await self.audit.record(
                        product_id=product_id,
                        action=action,
                        source=source,
                        change=new_stock - current,
                        stock_after=new_stock,
                        reference_id=reference_id,
                        reference_type=reference_type,
                        created_by=created_by,
                    )
                    await self.db.commit()
                    logger.info(
                        f"Stock for {product_id}: {current} -> {new_stock} "
                        f"({SyncAction(action).value}/{SyncSource(source).value})"
                    )
                    return RowResult(product_id, RowOutcome.UPDATED, current, new_stock)

                await self.db.rollback()
            except Exception:
                await self.db.rollback()
                raise

            if expected_stock is not None:
                actual = await self.current_stock(product_id)
                logger.info(
                    f"Stock for {product_id} moved from {expected_stock} to {actual} during reconcile; keeping {actual}"
                )
                return RowResult(product_id, RowOutcome.SUPERSEDED, expected_stock, actual)

            logger.debug(f"Compare-and-swap miss on {product_id} (attempt {attempt}/{attempts})")

        raise StockConflictError(
            f"Could not update stock for {product_id} after {attempts} attempts; the row kept changing"
        )

    async def mark_sync_error(self, product_id: str, error: str):
        """Record a failure on the row. Runs in its own transaction."""
        await self.db.execute(
            update(ProductInventory)
            .where(ProductInventory.product_id == product_id)
            .values(sync_error=error[:2000])
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.warning(f"Sync error recorded for {product_id}: {error}")
