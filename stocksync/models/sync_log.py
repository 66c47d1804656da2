# stocksync/models/sync_log.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.sql import func
from stocksync.database import Base


class SyncLogEntry(Base):
    """
    Append-only audit trail of ledger activity.

    Every accepted change to ProductInventory.stock writes exactly one entry in
    the same transaction, with `stock_after` equal to the post-update value.
    Outbound deduct/restore requests are also recorded here; they do not move
    the ledger, so their `stock_after` is the ledger value at request time.
    """
    __tablename__ = "inventory_sync_log"

    id = Column(Integer, primary_key=True)
    product_id = Column(String(64), ForeignKey("product_inventory.product_id"), nullable=False, index=True)

    action = Column(String(32), nullable=False, index=True)  # SyncAction
    source = Column(String(32), nullable=False)              # SyncSource

    change = Column(Integer, nullable=False, default=0)
    stock_after = Column(Integer, nullable=False)

    # Outbound adjustments: did the external platform accept the delta
    external_confirmed = Column(Boolean, nullable=True)
    error = Column(Text, nullable=True)

    reference_id = Column(String(128), nullable=True, index=True)
    reference_type = Column(String(32), nullable=True)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)

    def __repr__(self):
        return (f"<SyncLogEntry(id={self.id}, product_id='{self.product_id}', action='{self.action}', "
                f"change={self.change}, stock_after={self.stock_after})>")
