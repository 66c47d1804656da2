# stocksync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stocksync import models  # noqa: F401  registers tables on Base
from stocksync.core.config import get_settings
from stocksync.core.logging_config import configure_logging
from stocksync.core.security import require_service_auth
from stocksync.routes import health, inventory, sync, webhooks
from stocksync.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = get_settings()
    logger.info(f"Starting stocksync ({settings.ENVIRONMENT})")

    if not settings.SHOPIFY_WEBHOOK_SECRET:
        logger.warning("SHOPIFY_WEBHOOK_SECRET is not set; every inbound webhook will be rejected")
    if not settings.SERVICE_SECRET:
        logger.warning("SERVICE_SECRET is not set; billing and admin endpoints are unauthenticated")

    await start_scheduler()
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()


app = FastAPI(
    title="Stock Sync Service",
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(webhooks.router)  # Signature-checked inbound webhook; admin routes carry their own auth
app.include_router(inventory.router, dependencies=[require_service_auth()])
app.include_router(sync.router, dependencies=[require_service_auth()])
