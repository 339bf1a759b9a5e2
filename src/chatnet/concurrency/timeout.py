import asyncio
from typing import Any, Callable, Coroutine, TypeVar

T = TypeVar("T")

_ASYNCIO_TIMEOUT_ERROR = asyncio.TimeoutError


class TimeoutError(Exception):
    """Raised when an operation does not finish before its deadline."""

    def __init__(self, timeout_seconds: float, message: str | None = None):
        self.timeout_seconds = timeout_seconds
        self.message = message or f"Operation timed out after {timeout_seconds}s"
        super().__init__(self.message)


async def with_timeout(
    coro: Callable[[], Coroutine[Any, Any, T]],
    timeout_seconds: float,
    timeout_exception: type[Exception] = TimeoutError,
    exception_message: str | None = None,
) -> T:
    """
    Run an async callable with a hard deadline.

    When the deadline passes the running call is cancelled, so an HTTP request
    or websocket handshake does not keep running in the background.

    Args:
        coro: Async callable to execute.
        timeout_seconds: Deadline in seconds.
        timeout_exception: Exception type to raise on timeout (default: TimeoutError).
        exception_message: Custom error message (optional).

    Returns:
        The result of the coroutine.

    Raises:
        timeout_exception: If the operation times out.

    Example:
        try:
            response = await with_timeout(
                lambda: client.get("https://backend/health"),
                timeout_seconds=10.0,
            )
        except TimeoutError:
            response = None
    """
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")
    try:
        return await asyncio.wait_for(coro(), timeout=timeout_seconds)
    except _ASYNCIO_TIMEOUT_ERROR:
        raise timeout_exception(
            timeout_seconds,
            exception_message or f"Operation timed out after {timeout_seconds}s",
        ) from None


__all__ = [
    "TimeoutError",
    "with_timeout",
]
