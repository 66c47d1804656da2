"""
Inbound inventory webhook pipeline.

Order matters:

1. required headers present (topic, event id, signature)
2. signature verified over the raw body; failures leave no trace in the database
3. event id claimed; a duplicate returns the first delivery's stored outcome
4. body parsed; a malformed body is closed out as a failed event
5. quantity applied to every linked ledger row
6. event marked processed with its outcome, whatever happened in 5
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.enums import INVENTORY_LEVELS_UPDATE_TOPIC, ClaimStatus
from stocksync.core.exceptions import MalformedPayloadError, SignatureInvalidError
from stocksync.core.security import verify_signature
from stocksync.integrations.events import InventoryLevelUpdate
from stocksync.services.event_deduplicator import EventDeduplicator
from stocksync.services.inbound_sync import InboundSyncHandler

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    status: ClaimStatus
    event_id: str
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "duplicate": self.status == ClaimStatus.DUPLICATE,
            "event_id": self.event_id,
            "outcome": self.summary,
        }


class InventoryWebhookProcessor:
    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.deduplicator = EventDeduplicator(db)
        self.handler = InboundSyncHandler(db, self.settings)

    async def process(
        self,
        body: bytes,
        topic: Optional[str],
        event_id: Optional[str],
        signature: Optional[str],
    ) -> WebhookOutcome:
        """
        Raises:
            MalformedPayloadError: missing headers, or a body that is not a valid inventory level update
            SignatureInvalidError: signature does not match the body
        """
        missing = [
            name for name, value in (("topic", topic), ("event id", event_id), ("signature", signature))
            if not value
        ]
        if missing:
            raise MalformedPayloadError(f"Missing required webhook headers: {', '.join(missing)}")

        if not verify_signature(body, signature, self.settings.SHOPIFY_WEBHOOK_SECRET):
            logger.warning(f"Rejected webhook {event_id} ({topic}): invalid signature")
            raise SignatureInvalidError("Webhook signature verification failed")

        claim = await self.deduplicator.try_claim(event_id, topic, body.decode("utf-8", errors="replace"))
        if claim.status == ClaimStatus.DUPLICATE:
            stored = claim.event.outcome if claim.event is not None else None
            return WebhookOutcome(ClaimStatus.DUPLICATE, event_id, stored or {})

        event = claim.event
        try:
            if topic != INVENTORY_LEVELS_UPDATE_TOPIC:
                summary = {"status": "ignored_topic", "topic": topic}
                logger.info(f"Ignoring webhook {event_id} with topic {topic}")
                await self.deduplicator.mark_processed(event, success=True, outcome=summary)
                return WebhookOutcome(ClaimStatus.CLAIMED, event_id, summary)

            try:
                update = InventoryLevelUpdate.model_validate(json.loads(body))
            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, TypeError) as e:
                error = f"Malformed inventory payload: {e}"
                await self.deduplicator.mark_processed(
                    event, success=False, outcome={"status": "malformed"}, error_message=error
                )
                raise MalformedPayloadError(error) from e

            result = await self.handler.apply(update, reference_id=event_id)
            summary = result.summary()
            failed = result.failed
            error_message = "; ".join(f"{row.product_id}: {row.error}" for row in failed) or None
            await self.deduplicator.mark_processed(
                event, success=not failed, outcome=summary, error_message=error_message
            )
            return WebhookOutcome(ClaimStatus.CLAIMED, event_id, summary)

        except MalformedPayloadError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error processing webhook {event_id}: {e}")
            await self.db.rollback()
            await self.deduplicator.mark_processed(
                event, success=False, outcome={"status": "error"}, error_message=str(e)
            )
            raise
