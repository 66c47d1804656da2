from datetime import datetime
from typing import Any, Dict, List, Optional

from stocksync.schemas.base import BaseSchema


class InboundEventRead(BaseSchema):
    id: int
    event_id: str
    event_type: str
    processed: bool
    success: Optional[bool] = None
    error_message: Optional[str] = None
    outcome: Optional[Dict[str, Any]] = None
    received_at: datetime
    processed_at: Optional[datetime] = None


class InboundEventStats(BaseSchema):
    total: int
    processed: int
    unprocessed: int
    successful: int
    failed: int


class WebhookSubscriptionRead(BaseSchema):
    id: Optional[str] = None
    callback_url: Optional[str] = None


class WebhookRegistrationStatus(BaseSchema):
    topic: str
    callback_url: str
    registered: bool
    subscriptions: List[WebhookSubscriptionRead] = []


class WebhookEnsureResult(BaseSchema):
    action: str
    topic: str
    callback_url: str
    subscription_id: Optional[str] = None
    deleted: List[str] = []
