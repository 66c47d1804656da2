import pytest

from stocksync.database import engine_options, normalize_database_url


@pytest.mark.parametrize("url", [
    "postgres://u:p@db:5432/stock",
    "postgresql://u:p@db:5432/stock",
])
def test_plain_postgres_urls_get_asyncpg(url):
    assert normalize_database_url(url) == "postgresql+asyncpg://u:p@db:5432/stock"


def test_async_urls_pass_through():
    assert normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
    assert normalize_database_url("postgresql+asyncpg://db/stock") == "postgresql+asyncpg://db/stock"


def test_missing_url_raises():
    with pytest.raises(ValueError):
        normalize_database_url("")


def test_sqlite_gets_no_pool_sizing():
    assert "pool_size" not in engine_options("sqlite+aiosqlite:///:memory:")
    assert engine_options("postgresql+asyncpg://db/stock")["pool_size"] == 10
