#!/usr/bin/env python3
"""
Create the settlement tables without alembic.

For local setups and throwaway databases; production schemas go through
``alembic upgrade head``.

Usage:
    python scripts/init_database.py
    python scripts/init_database.py --database-url sqlite+aiosqlite:///settlement.db
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from settlement.config.database import create_engine
from settlement.config.logging import setup_logging
from settlement.models import Base


async def init_database(database_url: str | None = None) -> list[str]:
    """Create missing tables and return the names of all settlement tables."""
    engine = create_engine(database_url, echo=False)
    logger.info(f"Connecting to {engine.url.render_as_string(hide_password=True)}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    finally:
        await engine.dispose()

    tables = sorted(Base.metadata.tables)
    logger.success(f"Settlement tables ready: {', '.join(tables)}")
    return tables


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create settlement tables")
    parser.add_argument(
        "--database-url", default=None, help="Override DATABASE_URL from settings"
    )
    args = parser.parse_args()

    setup_logging(log_file="")
    asyncio.run(init_database(args.database_url))
