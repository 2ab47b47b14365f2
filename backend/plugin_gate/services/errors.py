# plugin_gate/services/errors.py
"""
Infrastructure faults raised by the service layer.

Business outcomes of the admission controller (revoked, expired, blocked, ...)
are never exceptions; only the storage being unreachable is.
"""
import asyncio
import functools
import logging
from typing import Awaitable, Callable, TypeVar

from tortoise.exceptions import DBConnectionError, IntegrityError, OperationalError

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


class StoreUnavailableError(Exception):
    """The data store did not answer in time or refused the connection."""
    code = "store_unavailable"

    def __init__(self, operation: str):
        super().__init__(f"store unavailable during {operation}")
        self.operation = operation


async def guarded(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await a storage call with a deadline and translate infrastructure failures
    into StoreUnavailableError. Integrity violations (e.g. a colliding license
    key) propagate unchanged so they fail loudly.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except IntegrityError:
        raise
    except (asyncio.TimeoutError, DBConnectionError, OperationalError) as exc:
        logger.warning("[store] %s failed: %s", operation, exc.__class__.__name__)
        raise StoreUnavailableError(operation) from exc


def store_call(operation: str, timeout_attr: str = "timeout"):
    """Method decorator form of guarded(); reads the timeout from ``self.<timeout_attr>``."""
    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(self, *args, **kwargs) -> T:
            return await guarded(operation, fn(self, *args, **kwargs), getattr(self, timeout_attr))
        return wrapper
    return decorator
