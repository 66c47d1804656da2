# stocksync/services/audit_log.py
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.enums import SyncAction, SyncSource
from stocksync.models.sync_log import SyncLogEntry

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Append-only writer for SyncLogEntry rows.

    `record` only adds and flushes; the caller owns the transaction so the entry
    commits (or rolls back) together with the ledger change it describes.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        product_id: str,
        action: SyncAction,
        source: SyncSource,
        change: int,
        stock_after: int,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        created_by: Optional[str] = None,
        external_confirmed: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> SyncLogEntry:
        """
        Add one audit entry to the current transaction.

        Args:
            product_id: Ledger row the entry belongs to
            action: inbound_update, deduct, restore or reconcile
            source: What triggered it (webhook, invoice, sweep, manual)
            change: Signed delta (ledger delta for mutations, requested delta for adjustments)
            stock_after: Ledger value after the mutation
            reference_id/reference_type: e.g. invoice id, webhook id, sync run id
            created_by: Actor
            external_confirmed/error: Outcome of an outbound adjustment

        Returns:
            The pending SyncLogEntry
        """
        entry = SyncLogEntry(
            product_id=product_id,
            action=SyncAction(action).value,
            source=SyncSource(source).value,
            change=change,
            stock_after=stock_after,
            reference_id=reference_id,
            reference_type=reference_type,
            created_by=created_by,
            external_confirmed=external_confirmed,
            error=error,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(entry)
        await self.db.flush()

        logger.debug(
            f"Audit: {entry.action} {product_id} change={change} stock_after={stock_after} "
            f"(source: {entry.source}, ref: {reference_id or 'N/A'})"
        )
        return entry

    async def list_for_product(self, product_id: str, limit: int = 50, offset: int = 0) -> List[SyncLogEntry]:
        """Most recent first"""
        stmt = (
            select(SyncLogEntry)
            .where(SyncLogEntry.product_id == product_id)
            .order_by(SyncLogEntry.created_at.desc(), SyncLogEntry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def cleanup_old_entries(self, days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(
            delete(SyncLogEntry)
            .where(SyncLogEntry.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} sync log entries older than {days} days")
        return deleted
