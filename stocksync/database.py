# stocksync/database.py
"""
Engine and session factory shared by the API, the scheduler and the CLI.

Sessions are created with expire_on_commit=False: services commit per ledger
write and keep using the rows they loaded.
"""

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from stocksync.core.config import get_settings


def normalize_database_url(url: str) -> str:
    """Force an async driver onto plain PostgreSQL URLs (Heroku/Railway style)."""
    if not url:
        raise ValueError("DATABASE_URL is not set in environment variables")
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def engine_options(url: str) -> dict:
    options = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=1800, pool_pre_ping=True)
    return options


database_url = normalize_database_url(get_settings().DATABASE_URL)

engine = create_async_engine(database_url, **engine_options(database_url))

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()
