from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.config import Settings, get_settings
from stocksync.dependencies import get_db
from stocksync.models import InboundEvent, ProductInventory
from stocksync.scheduler import get_scheduler_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Liveness, plus whether the pieces the sync engine needs are configured"""
    scheduler = await get_scheduler_status()
    return {
        "status": "healthy",
        "service": "stocksync",
        "environment": settings.ENVIRONMENT,
        "webhook_secret_configured": bool(settings.SHOPIFY_WEBHOOK_SECRET),
        "scheduler": scheduler["status"],
    }


@router.get("/health/db")
async def database_health(db: AsyncSession = Depends(get_db)):
    """Database connectivity and the size of the sync backlog"""
    try:
        await db.execute(text("SELECT 1"))
        sync_enabled = (await db.execute(
            select(func.count()).select_from(ProductInventory).where(ProductInventory.sync_enabled.is_(True))
        )).scalar_one()
        unprocessed = (await db.execute(
            select(func.count()).select_from(InboundEvent).where(InboundEvent.processed.is_(False))
        )).scalar_one()
    except Exception as e:
        return {"status": "unhealthy", "database": "error", "error": str(e)}

    return {
        "status": "healthy",
        "database": "connected",
        "sync_enabled_products": sync_enabled,
        "unprocessed_events": unprocessed,
    }
