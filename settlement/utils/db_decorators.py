"""
Database decorators for transactional retries.

Provides a decorator that runs a service method as one transaction
callback: commit on success, rollback on error, re-run on conflict.
"""

import asyncio
import random
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger

from settlement.config.settings import settings
from settlement.utils.exceptions import Conflict, is_conflict_error


T = TypeVar("T")


def retry_on_conflict(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that re-runs a transactional method when it loses a race.

    Usage:
        class MyService(BaseService):
            @retry_on_conflict
            async def _attempt(self, ...):
                # Re-read state, mutate, no commit
                ...

    The decorator will:
    1. Execute the wrapped method
    2. If successful, commit self.session
    3. On any exception, roll back self.session
    4. On a conflict (stale version, unique violation, lock contention),
       wait with exponential backoff and jitter, then run the method again
    5. After settings.conflict_max_retries attempts, raise Conflict

    Non-conflict exceptions are re-raised after the rollback. The wrapped
    method must not perform external side effects since it may run
    several times.

    Args:
        func: Async method of an object with ``session`` attribute

    Returns:
        Wrapped method
    """
    @wraps(func)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
        session = self.session
        bound_logger = getattr(self, "logger", logger)
        max_retries = max(1, settings.conflict_max_retries)

        for attempt in range(max_retries):
            try:
                result = await func(self, *args, **kwargs)
                await session.commit()
                return result
            except Exception as e:
                await session.rollback()

                if not is_conflict_error(e):
                    raise

                if attempt < max_retries - 1:
                    delay = settings.conflict_retry_base_delay * (2 ** attempt) + random.uniform(0, 0.05)
                    bound_logger.info(
                        f"Conflict in {func.__name__}, retrying",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "error": type(e).__name__,
                            "delay_seconds": round(delay, 3),
                        },
                    )
                    await asyncio.sleep(delay)
                    continue

                bound_logger.warning(
                    f"Conflict retries exhausted in {func.__name__}",
                    extra={
                        "function": func.__name__,
                        "attempts": max_retries,
                        "error": str(e),
                    },
                )
                raise Conflict() from e

        # max_retries >= 1 so the loop always returns or raises
        raise Conflict()

    return wrapper
