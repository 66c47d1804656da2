# stocksync/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from stocksync.core.enums import NegativeStockPolicy


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Shopify Admin API
    SHOPIFY_SHOP_URL: Optional[str] = None
    SHOPIFY_ADMIN_API_ACCESS_TOKEN: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2024-10"
    SHOPIFY_LOCATION_ID: Optional[str] = None  # Fallback location for unlocated rows

    # Inbound webhooks
    SHOPIFY_WEBHOOK_SECRET: str = ""
    WEBHOOK_CALLBACK_URL: str = ""

    # Service-to-service auth for billing/admin endpoints. Empty disables the check.
    SERVICE_SECRET: str = ""

    # External calls
    EXTERNAL_TIMEOUT_SECONDS: float = 10.0
    ADJUSTMENT_TIMEOUT_SECONDS: float = 15.0
    MAX_CONCURRENT_EXTERNAL_CALLS: int = 4

    # Ledger
    NEGATIVE_STOCK_POLICY: NegativeStockPolicy = NegativeStockPolicy.CLAMP
    LEDGER_CAS_RETRIES: int = 5

    # Scheduler
    RECONCILE_SCHEDULE_ENABLED: bool = False
    RECONCILE_INTERVAL_MINUTES: int = 30
    WEBHOOK_EVENT_RETENTION_DAYS: int = 30
    SYNC_LOG_RETENTION_DAYS: int = 90

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()

