# stocksync/cli/create_tables.py
import asyncio
import click

from stocksync.database import Base, engine
import stocksync.models  # noqa: F401  registers the tables on Base


async def run_create_tables(db_engine=engine):
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@click.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy (development only; use alembic otherwise)"""
    asyncio.run(run_create_tables())
    click.echo("All tables created successfully!")
