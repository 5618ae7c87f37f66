"""
Database decorators for concurrency retries.

Retries operations that lost a race for a row lock or an optimistic
version, rolling the session back between attempts.
"""

import asyncio
import random
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from payouts.utils.exceptions import ConcurrencyConflictError, is_retryable


T = TypeVar("T")

# Upper bound of random jitter added to each backoff delay, seconds
RETRY_JITTER_MAX = 0.1


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    session = kwargs.get("session")
    if session is None and args:
        # Plain function taking the session first, or a service method
        if isinstance(args[0], AsyncSession):
            session = args[0]
        else:
            session = getattr(args[0], "session", None)
    return session


def retry_on_conflict(
    max_retries: int | Callable[[Any], int] = 3,
    base_delay: float | Callable[[Any], float] = 0.2,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that retries an operation on concurrency conflicts.

    Retries ConcurrencyConflictError, StaleDataError and lock-not-available
    OperationalError. The session is rolled back before each new attempt.
    Delay is base_delay * 2^attempt plus random jitter. When attempts are
    exhausted a ConcurrencyConflictError is raised.

    Both limits may be given as callables receiving the first positional
    argument (the service instance), so they can be read from its policy.

    Usage:
        @retry_on_conflict(max_retries=3, base_delay=0.2)
        async def create(self, ...):
            ...

    Args:
        max_retries: Total attempts
        base_delay: Base backoff delay in seconds

    Returns:
        Decorator
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            owner = args[0] if args else None
            attempts = max_retries(owner) if callable(max_retries) else max_retries
            delay_base = base_delay(owner) if callable(base_delay) else base_delay
            session = _find_session(args, kwargs)

            for attempt in range(attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e):
                        raise

                    if session is not None:
                        await session.rollback()

                    if attempt >= attempts - 1:
                        logger.warning(
                            f"{func.__name__}: concurrency conflict, retries exhausted",
                            extra={"attempts": attempts, "error": str(e)},
                        )
                        if isinstance(e, ConcurrencyConflictError):
                            raise
                        raise ConcurrencyConflictError() from e

                    delay = delay_base * (2 ** attempt) + random.uniform(0, RETRY_JITTER_MAX)
                    logger.info(
                        f"{func.__name__}: concurrency conflict, retrying",
                        extra={"attempt": attempt + 1, "delay": round(delay, 3)},
                    )
                    await asyncio.sleep(delay)

            # attempts < 1 is rejected by settings validation
            raise ConcurrencyConflictError()

        return wrapper

    return decorator
