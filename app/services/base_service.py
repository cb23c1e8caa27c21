"""
Service layer foundations.

Every partner program service works on one AsyncSession that it shares with
its collaborators, and logs through a logger bound to its class name.
"""

import functools
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.exceptions import PartnerProgramError

T = TypeVar("T")

AsyncMethod = Callable[..., Awaitable[T]]


class BaseService:
    """
    Base class of session-bound services.

    Services never open or close sessions; the caller owns the session and
    may hand the same one to several services (see app.bootstrap).
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize service.

        Args:
            session: Async database session owned by the caller
        """
        self.session = session
        self.logger = logger.bind(service=type(self).__name__)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        """Roll back and expire every instance loaded in the session."""
        await self.session.rollback()


def transaction(func: AsyncMethod[T]) -> AsyncMethod[T]:
    """
    Run a service method as one unit of work.

    Commits when the method returns. Any exception rolls the session back
    and propagates: PartnerProgramError is an expected outcome and is
    logged as a warning, anything else as an error with traceback.

    Args:
        func: Async method of a BaseService subclass

    Returns:
        Wrapped method
    """

    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> T:
        try:
            result = await func(self, *args, **kwargs)
        except PartnerProgramError as e:
            await self.rollback()
            self.logger.warning(
                f"{func.__name__} rejected: {e.code}",
                extra={"operation": func.__name__, "error": e.message},
            )
            raise
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"{func.__name__} failed, rolled back",
                extra={"operation": func.__name__, "error": str(e)},
                exc_info=True,
            )
            raise

        await self.commit()
        return result

    return wrapper


def log_operation(func: AsyncMethod[T]) -> AsyncMethod[T]:
    """Log duration of a service method at debug level."""

    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> T:
        started = time.perf_counter()
        outcome = "failed"
        try:
            result = await func(self, *args, **kwargs)
            outcome = "done"
            return result
        finally:
            self.logger.debug(
                f"{func.__name__} {outcome}",
                extra={
                    "operation": func.__name__,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )

    return wrapper
