"""
Event loop and database access for dramatiq actors.

Actors are synchronous. Each worker thread keeps one event loop and runs
coroutines on it; SQLAlchemy and Redis connections are bound to the loop
that opened them, so the loop must outlive a single task.
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from payouts.config.settings import settings

T = TypeVar("T")

_local = threading.local()
_task_session_maker: async_sessionmaker[AsyncSession] | None = None


def _thread_loop() -> asyncio.AbstractEventLoop:
    loop = getattr(_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _local.loop = loop
        logger.debug(f"Event loop created for worker thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion on the worker thread's loop.

    Args:
        coro: Coroutine to run

    Returns:
        Result of the coroutine
    """
    loop = _thread_loop()
    try:
        return loop.run_until_complete(coro)
    except Exception as e:
        logger.exception(f"Task coroutine failed: {e}")
        raise


def get_task_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Session factory for actors, created on first use.

    NullPool: worker threads run separate loops and must not share
    pooled connections.
    """
    global _task_session_maker
    if _task_session_maker is None:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            poolclass=NullPool,
        )
        _task_session_maker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _task_session_maker
