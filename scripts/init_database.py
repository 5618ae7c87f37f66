#!/usr/bin/env python3
"""
Create partner payout tables.

Usage:
    python scripts/init_database.py          # create missing tables
    python scripts/init_database.py --drop   # drop and recreate (dev only)
"""

import argparse
import asyncio
import sys

from loguru import logger

from payouts.config.database import async_engine
from payouts.config.settings import settings
from payouts.models import Base

logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database(drop: bool = False) -> None:
    """Create tables for every registered model."""
    tables = ", ".join(sorted(Base.metadata.tables))

    async with async_engine.begin() as conn:
        if drop:
            if settings.environment == "production":
                raise SystemExit("Refusing to drop tables in production")
            logger.warning("Dropping tables...")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await async_engine.dispose()
    logger.success(f"Tables ready: {tables}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--drop", action="store_true", help="drop tables first")
    args = parser.parse_args()
    asyncio.run(init_database(drop=args.drop))
