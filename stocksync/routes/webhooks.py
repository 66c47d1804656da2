# stocksync/routes/webhooks.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.core.exceptions import ExternalAPIError, MalformedPayloadError, SignatureInvalidError
from stocksync.core.security import require_service_auth
from stocksync.dependencies import get_db, get_shopify_client
from stocksync.schemas.webhook import (
    InboundEventRead,
    InboundEventStats,
    WebhookEnsureResult,
    WebhookRegistrationStatus,
)
from stocksync.services.event_deduplicator import EventDeduplicator
from stocksync.services.shopify.client import ShopifyGraphQLClient
from stocksync.services.shopify.webhook_registration import check_registration, ensure_registration
from stocksync.services.webhook_processor import InventoryWebhookProcessor

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

TOPIC_HEADER = "X-Shopify-Topic"
EVENT_ID_HEADER = "X-Shopify-Webhook-Id"
SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"


@router.post("/inventory-update")
async def inventory_update_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Inventory level notification from the platform. Open endpoint: the HMAC
    signature over the raw body is the authentication.
    """
    body = await request.body()
    processor = InventoryWebhookProcessor(db, settings)

    try:
        outcome = await processor.process(
            body,
            topic=request.headers.get(TOPIC_HEADER),
            event_id=request.headers.get(EVENT_ID_HEADER),
            signature=request.headers.get(SIGNATURE_HEADER),
        )
    except SignatureInvalidError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except MalformedPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Webhook processing failed: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    return outcome.to_response()


@router.get("/check", response_model=WebhookRegistrationStatus, dependencies=[require_service_auth()])
async def check_webhook_registration(
    settings: Settings = Depends(get_settings),
    client: ShopifyGraphQLClient = Depends(get_shopify_client),
):
    try:
        return await check_registration(client, settings)
    except ExternalAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/ensure", response_model=WebhookEnsureResult, dependencies=[require_service_auth()])
async def ensure_webhook_registration(
    settings: Settings = Depends(get_settings),
    client: ShopifyGraphQLClient = Depends(get_shopify_client),
):
    try:
        return await ensure_registration(client, settings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExternalAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/events", response_model=List[InboundEventRead], dependencies=[require_service_auth()])
async def list_webhook_events(
    event_type: Optional[str] = None,
    processed: Optional[bool] = None,
    success: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    events = await EventDeduplicator(db).list_events(
        event_type=event_type, processed=processed, success=success, limit=limit, offset=offset
    )
    return InboundEventRead.from_orm_list(events)


@router.get("/stats", response_model=InboundEventStats, dependencies=[require_service_auth()])
async def webhook_event_stats(db: AsyncSession = Depends(get_db)):
    return await EventDeduplicator(db).get_stats()
