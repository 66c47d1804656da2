# stocksync/models/webhook.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON, Boolean, Text
from sqlalchemy.sql import func
from stocksync.database import Base


class InboundEvent(Base):
    """
    One row per inbound notification id.

    The unique constraint on `event_id` is what makes claiming atomic: the first
    insert wins, every later insert of the same id fails and is treated as a
    duplicate delivery.
    """
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True)
    event_id = Column(String(128), nullable=False, unique=True, index=True)
    event_type = Column(String(64), nullable=False, index=True)
    raw_payload = Column(Text, nullable=True)

    processed = Column(Boolean, nullable=False, default=False, server_default="0", index=True)
    success = Column(Boolean, nullable=True)
    error_message = Column(Text, nullable=True)
    outcome = Column(JSON, nullable=True)  # {"updated": [...], "skipped": [...], "failed": [...]}

    received_at = Column(DateTime(timezone=True), server_default=func.now(), default=lambda: datetime.now(timezone.utc), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (f"<InboundEvent(event_id='{self.event_id}', type='{self.event_type}', "
                f"processed={self.processed}, success={self.success})>")
