# stocksync/services/event_deduplicator.py
"""
At-most-once claiming of inbound events.

A claim is an INSERT into webhook_events. The unique constraint on event_id
decides the race: whoever commits first owns the event, everybody else gets
an IntegrityError and is told the event is a duplicate. There is no separate
"does it exist?" read before the insert.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.enums import ClaimStatus
from stocksync.models.webhook import InboundEvent

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    status: ClaimStatus
    event: Optional[InboundEvent]

    @property
    def claimed(self) -> bool:
        return self.status == ClaimStatus.CLAIMED


class EventDeduplicator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def try_claim(self, event_id: str, event_type: str, raw_payload: Optional[str] = None) -> ClaimResult:
        """
        Insert-if-absent on event_id, committed immediately so the claim is durable
        before any slow work starts.
        """
        event = InboundEvent(
            event_id=event_id,
            event_type=event_type,
            raw_payload=raw_payload,
            processed=False,
            received_at=datetime.now(timezone.utc),
        )
        self.db.add(event)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_event(event_id)
            logger.info(f"Duplicate delivery of event {event_id} (processed={existing.processed if existing else 'unknown'})")
            return ClaimResult(status=ClaimStatus.DUPLICATE, event=existing)

        logger.info(f"Claimed event {event_id} ({event_type})")
        return ClaimResult(status=ClaimStatus.CLAIMED, event=event)

    async def mark_processed(
        self,
        event: InboundEvent,
        success: bool,
        outcome: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> InboundEvent:
        """Close out a claimed event, successful or not, so redelivery is a no-op."""
        # Per-row rollbacks during processing expire the instance
        await self.db.refresh(event)
        event.processed = True
        event.success = success
        event.outcome = outcome
        event.error_message = error_message
        event.processed_at = datetime.now(timezone.utc)
        self.db.add(event)
        await self.db.commit()

        if success:
            logger.info(f"Event {event.event_id} processed")
        else:
            logger.warning(f"Event {event.event_id} processed with error: {error_message}")
        return event

    async def get_event(self, event_id: str) -> Optional[InboundEvent]:
        result = await self.db.execute(select(InboundEvent).where(InboundEvent.event_id == event_id))
        return result.scalar_one_or_none()

    async def list_events(
        self,
        event_type: Optional[str] = None,
        processed: Optional[bool] = None,
        success: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[InboundEvent]:
        stmt = select(InboundEvent)
        if event_type:
            stmt = stmt.where(InboundEvent.event_type == event_type)
        if processed is not None:
            stmt = stmt.where(InboundEvent.processed == processed)
        if success is not None:
            stmt = stmt.where(InboundEvent.success == success)
        stmt = stmt.order_by(InboundEvent.received_at.desc(), InboundEvent.id.desc()).limit(limit).offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_stats(self) -> Dict[str, int]:
        async def count(*conditions) -> int:
            stmt = select(func.count(InboundEvent.id))
            if conditions:
                stmt = stmt.where(and_(*conditions))
            return (await self.db.execute(stmt)).scalar_one()

        total = await count()
        processed = await count(InboundEvent.processed.is_(True))
        successful = await count(InboundEvent.processed.is_(True), InboundEvent.success.is_(True))
        failed = await count(InboundEvent.processed.is_(True), InboundEvent.success.is_(False))

        return {
            "total": total,
            "processed": processed,
            "unprocessed": total - processed,
            "successful": successful,
            "failed": failed,
        }

    async def cleanup_old_events(self, days: int) -> int:
        """Delete processed events received more than `days` ago. Unprocessed claims are kept."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(
            delete(InboundEvent)
            .where(
                InboundEvent.processed.is_(True),
                InboundEvent.received_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} processed webhook events older than {days} days")
        return deleted
