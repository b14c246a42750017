"""
Base service class.

Every settlement service owns one AsyncSession and a logger bound to its
class name. Administrator operations run once inside ``transaction``;
member-facing settlement attempts use ``retry_on_conflict`` instead.
"""

import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.utils.datetime_utils import ensure_utc, utc_now
from settlement.utils.exceptions import SettlementError


T = TypeVar("T")


@dataclass
class ServiceResult:
    """
    Outcome handed back to an entry point collaborator.

    ``error_code`` is the stable code of the domain error, ``error`` its
    member-facing message.
    """
    success: bool
    data: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def from_error(cls, error: SettlementError) -> "ServiceResult":
        return cls(success=False, error=error.message, error_code=error.error_code)


class BaseService:
    """Session holder with a per-service logger."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session shared by the service's repositories
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    @staticmethod
    def resolve_now(now: datetime | None = None) -> datetime:
        """Return ``now`` as aware UTC, defaulting to the current time."""
        return ensure_utc(now) if now is not None else utc_now()


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a service method as a single transaction.

    Commits when the method returns and rolls back when it raises. A
    SettlementError is a refusal the caller expects, so it is re-raised
    without an error log; anything else is logged with its traceback.

    Args:
        func: Async method of a BaseService

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except SettlementError:
            await self.rollback()
            raise
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={
                    "error": str(e),
                    "function": func.__name__,
                },
                exc_info=True,
            )
            raise

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Log an administrator operation with its duration.

    Refusals are logged at INFO with their error code, unexpected failures
    at ERROR.
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()

        self.logger.debug(
            f"Starting {func.__name__}",
            extra={
                "function": func.__name__,
                "kwargs_keys": list(kwargs.keys()),
            },
        )

        try:
            result = await func(self, *args, **kwargs)
        except SettlementError as e:
            self.logger.info(
                f"Rejected {func.__name__}: {e.error_code}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.time() - start_time, 3),
                    "error_code": e.error_code,
                },
            )
            raise
        except Exception as e:
            self.logger.error(
                f"Failed {func.__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(time.time() - start_time, 3),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise

        self.logger.debug(
            f"Completed {func.__name__}",
            extra={
                "function": func.__name__,
                "duration_seconds": round(time.time() - start_time, 3),
            },
        )
        return result

    return wrapper
