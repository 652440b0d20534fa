import asyncio
from typing import Awaitable, TypeVar

from rxbridge.core.exceptions import TimeoutException

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout_seconds: float, what: str) -> T:
    """
    Await with an upper bound. Exceeding it raises TimeoutException instead of
    hanging the caller.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise TimeoutException(
            msg=f"{what} timed out after {timeout_seconds}s",
            details={"operation": what, "timeout_s": timeout_seconds},
        ) from None
