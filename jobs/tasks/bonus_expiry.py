"""Scheduled bonus expiry sweep."""

from datetime import datetime

import dramatiq
from loguru import logger
from redis.exceptions import LockError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobs.async_runner import get_task_session_maker, run_async
from payouts.config.policy import PayoutPolicy
from payouts.services.bonus.expiry_policy import BonusExpiryPolicy
from payouts.utils.redis_utils import get_redis_client

SWEEP_LOCK_NAME = "lock:bonus_expiry_sweep"
SWEEP_LOCK_TIMEOUT = 600  # seconds
SWEEP_TIME_LIMIT = 600_000  # ms


@dramatiq.actor(max_retries=3, time_limit=SWEEP_TIME_LIMIT)
def sweep_expired_bonuses(as_of: str | None = None) -> int:
    """
    Expire bonus grants due by as_of.

    Run daily. Safe to re-run: grants are expired at most once.

    Args:
        as_of: ISO 8601 cutoff (now if omitted)

    Returns:
        Number of grants expired
    """
    logger.info("Starting bonus expiry sweep...")
    cutoff = datetime.fromisoformat(as_of) if as_of else None
    expired = run_async(_sweep_with_lock(cutoff))
    logger.info(f"Bonus expiry sweep completed: {expired} grants expired")
    return expired


async def _sweep_with_lock(as_of: datetime | None) -> int:
    """Run the sweep under a Redis lock so workers never sweep concurrently."""
    redis_client = get_redis_client()
    lock = redis_client.lock(SWEEP_LOCK_NAME, timeout=SWEEP_LOCK_TIMEOUT)
    try:
        if not await lock.acquire(blocking=False):
            logger.info("Bonus expiry sweep already running, skipping")
            return 0
        try:
            return await sweep_expired_bonuses_async(get_task_session_maker(), as_of)
        finally:
            try:
                await lock.release()
            except LockError as e:
                logger.warning(f"Bonus expiry lock expired before release: {e}")
    finally:
        await redis_client.aclose()


async def sweep_expired_bonuses_async(
    session_maker: async_sessionmaker[AsyncSession],
    as_of: datetime | None = None,
    policy: PayoutPolicy | None = None,
) -> int:
    """
    Async implementation of the sweep.

    Args:
        session_maker: Session factory bound to the task engine
        as_of: Cutoff (now if omitted)
        policy: Business policy (from settings if omitted)

    Returns:
        Number of grants expired
    """
    async with session_maker() as session:
        expiry_policy = BonusExpiryPolicy(session, policy)
        return await expiry_policy.sweep_expired_bonuses(as_of)
