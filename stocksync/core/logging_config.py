# stocksync/core/logging_config.py
"""
Logging setup for the service and the CLI.

The sync engine logs every ledger mutation and external call at INFO, so the
libraries underneath (HTTP client, database drivers, scheduler) are held at
WARNING to keep those lines readable. Configured secrets are masked in every
record that reaches the root handlers.
"""

import logging
from typing import Iterable, Optional

from stocksync.core.config import get_settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncpg",
    "aiosqlite",
    "apscheduler",  # job runs are reported by scheduler.job_listener
    "uvicorn.access",
)

MASK = "***"


class SecretMaskingFilter(logging.Filter):
    """Replace known secret values in formatted log messages."""

    def __init__(self, secrets: Iterable[Optional[str]]):
        super().__init__()
        # Very short values would mask unrelated text
        self.secrets = sorted({s for s in secrets if s and len(s) >= 6}, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self.secrets:
            masked = masked.replace(secret, MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def configure_logging(level: Optional[str] = None):
    """
    Configure root logging once per process.

    `level` overrides LOG_LEVEL from settings.
    """
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL or "INFO").upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, handlers=[logging.StreamHandler()])

    masking = SecretMaskingFilter([
        settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN,
        settings.SHOPIFY_WEBHOOK_SECRET,
        settings.SERVICE_SECRET,
    ])
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SecretMaskingFilter) for f in handler.filters):
            handler.addFilter(masking)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("stocksync").setLevel(numeric_level)
    logging.getLogger(__name__).info(f"Logging configured at level: {log_level}")
