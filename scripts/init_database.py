#!/usr/bin/env python3
"""
Create chainhook tables without running migrations.

Meant for local development and throwaway databases; production schemas
are managed with `alembic upgrade head`.

Usage:
    DATABASE_URL=sqlite+aiosqlite:///chainhook.db python scripts/init_database.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import create_async_engine

from app.config.settings import settings
from app.models import Base

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database(database_url: str) -> None:
    """Create all tables that do not exist yet."""
    logger.info("Connecting to database...")
    engine = create_async_engine(database_url, echo=False)

    try:
        async with engine.begin() as conn:
            logger.info("Creating tables (checkfirst=True)...")
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    finally:
        await engine.dispose()

    logger.success(
        f"Tables ready: {', '.join(sorted(Base.metadata.tables))}"
    )


if __name__ == "__main__":
    asyncio.run(init_database(settings.database_url))
