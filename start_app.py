#!/usr/bin/env python
"""Run the stock sync service under uvicorn."""
import os
import uvicorn

from stocksync.core.logging_config import configure_logging

if __name__ == "__main__":
    configure_logging()
    port = int(os.environ.get("PORT", 8000))
    reload = os.environ.get("ENVIRONMENT", "development") == "development"

    uvicorn.run(
        "stocksync.main:app",
        host="0.0.0.0",
        port=port,
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        reload=reload,
    )
