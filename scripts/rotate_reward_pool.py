#!/usr/bin/env python3
"""
Rotate the MANA reward pool.

Retires the active pool generation and starts a new one with a fresh code.

Usage:
    python scripts/rotate_reward_pool.py --code SPRING26
    python scripts/rotate_reward_pool.py --code SPRING26 --pool 2000 --ttl-hours 48 --admin ops
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from settlement.config.database import create_engine, create_session_maker
from settlement.config.logging import setup_logging
from settlement.services.reward import RewardPoolService
from settlement.utils.datetime_utils import utc_now
from settlement.utils.exceptions import SettlementError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rotate the MANA reward pool")
    parser.add_argument("--code", required=True, help="New secret code")
    parser.add_argument(
        "--pool", type=Decimal, default=None, help="Pool size (default from settings)"
    )
    parser.add_argument(
        "--ttl-hours", type=int, default=None, help="Code lifetime in hours"
    )
    parser.add_argument("--admin", default=None, help="Administrator performing the rotation")
    return parser.parse_args(argv)


async def rotate(args: argparse.Namespace) -> int:
    engine = create_engine()
    session_maker = create_session_maker(engine)

    expires_at = None
    if args.ttl_hours:
        expires_at = utc_now() + timedelta(hours=args.ttl_hours)

    try:
        async with session_maker() as session:
            service = RewardPoolService(session)
            pool = await service.rotate_pool(
                args.code,
                total_pool=args.pool,
                expires_at=expires_at,
                rotated_by=args.admin,
            )
    except SettlementError as e:
        logger.error(f"Rotation rejected: {e.message}")
        return 1
    except ValueError as e:
        logger.error(f"Rotation rejected: {e}")
        return 1
    finally:
        await engine.dispose()

    logger.success(
        f"Generation {pool.generation} active: code={pool.active_code} "
        f"pool={pool.total_pool} expires={pool.expires_at:%Y-%m-%d %H:%M} UTC"
    )
    return 0


if __name__ == "__main__":
    setup_logging(log_file="")
    sys.exit(asyncio.run(rotate(parse_args())))
