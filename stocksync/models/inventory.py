# stocksync/models/inventory.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, CheckConstraint, Index
from sqlalchemy.sql import func
from stocksync.database import Base


class ProductInventory(Base):
    """
    The local stock ledger: one row per internal product.

    `stock` mirrors the authoritative quantity held by the external platform at
    the linked item/location. Rows are never deleted; sync is switched off with
    `sync_enabled = False` instead.
    """
    __tablename__ = "product_inventory"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_inventory_stock_nonneg"),
        Index("ix_product_inventory_external_item", "external_item_ref", "external_location_ref"),
    )

    product_id = Column(String(64), primary_key=True)

    stock = Column(Integer, nullable=False, default=0, server_default="0")

    # --- Link to the external platform ---
    external_product_ref = Column(String(64), nullable=True)
    external_variant_ref = Column(String(64), nullable=True)
    external_item_ref = Column(String(64), nullable=True)
    external_location_ref = Column(String(64), nullable=True)

    sync_enabled = Column(Boolean, nullable=False, default=False, server_default="0")

    # --- Observability ---
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def is_linked(self) -> bool:
        return bool(self.external_item_ref and self.external_location_ref)

    def __repr__(self):
        return (f"<ProductInventory(product_id='{self.product_id}', stock={self.stock}, "
                f"item='{self.external_item_ref}', location='{self.external_location_ref}', "
                f"sync_enabled={self.sync_enabled})>")
