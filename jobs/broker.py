"""
Dramatiq broker.

Workers import this module first, then the task modules:

    dramatiq jobs.broker jobs.tasks.bonus_expiry
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from payouts.config.logging import setup_logging
from payouts.config.settings import settings
from payouts.utils.redis_utils import get_redis_url_masked

# Retry backoff for failed tasks, ms
TASK_MIN_BACKOFF = 1_000
TASK_MAX_BACKOFF = 60_000


def create_broker() -> RedisBroker:
    """Build the Redis broker with worker middleware."""
    redis_broker = RedisBroker(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
    )
    redis_broker.add_middleware(ShutdownNotifications())
    redis_broker.add_middleware(CurrentMessage())
    redis_broker.add_middleware(
        Retries(min_backoff=TASK_MIN_BACKOFF, max_backoff=TASK_MAX_BACKOFF)
    )
    return redis_broker


setup_logging()

broker = create_broker()
dramatiq.set_broker(broker)

logger.info(f"Dramatiq broker initialized: {get_redis_url_masked()}")
