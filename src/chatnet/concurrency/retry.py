import asyncio
import functools
import random
from typing import Any, Coroutine, TypeVar
from collections.abc import Callable

from chatnet.config.logging_config import get_logger
from chatnet.config.network import NetworkBudget

log = get_logger(__name__)

T = TypeVar("T")


def compute_backoff_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at ``max_delay``."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    return min(initial_delay * (exponential_base**attempt), max_delay)


async def retry_with_exponential_backoff(
    func: Callable[[], Coroutine[Any, Any, T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """
    Retry an async function with exponential backoff and optional jitter.

    Used by the realtime client to reconnect after a dropped connection and
    by the session to retry the first connect.

    Args:
        func: Async function to execute and retry on failure.
        max_retries: Maximum number of retry attempts after the first call.
                     Use -1 for unlimited retries.
        initial_delay: Initial delay in seconds between retries.
        max_delay: Maximum delay cap in seconds.
        exponential_base: Base for exponential backoff calculation.
                          Delay = initial_delay * (exponential_base ** attempt)
        jitter: Whether to randomize each delay between 50% and 150%.
        retryable_exceptions: Exception types that trigger a retry.
        on_retry: Called with (attempt, exception, delay) before each sleep.

    Returns:
        The return value of the successfully executed function.

    Raises:
        The last exception if all retries are exhausted.

    Example:
        await retry_with_exponential_backoff(
            lambda: client.connect("user-1", token),
            max_retries=3,
            initial_delay=1.0,
            retryable_exceptions=(RealtimeConnectError,),
        )
    """
    if max_retries < -1:
        raise ValueError("max_retries must be -1 (unlimited) or >= 0")

    attempt = 0

    while True:
        try:
            return await func()
        except retryable_exceptions as e:
            if max_retries != -1 and attempt >= max_retries:
                log.error(
                    f"Operation failed after {max_retries} retries: {e}",
                    extra={"attempt": attempt + 1, "max_retries": max_retries},
                )
                raise

            delay = compute_backoff_delay(attempt, initial_delay, max_delay, exponential_base)
            actual_delay = min(delay * random.uniform(0.5, 1.5), max_delay) if jitter else delay

            log.warning(
                f"Operation failed (attempt {attempt + 1}), retrying in {actual_delay:.2f}s: {e}",
                extra={"attempt": attempt + 1, "next_delay": actual_delay},
            )
            if on_retry is not None:
                on_retry(attempt + 1, e, actual_delay)

            await asyncio.sleep(actual_delay)
            attempt += 1


class RetryPolicy:
    """
    A reusable retry configuration.

    Example:
        policy = RetryPolicy.from_budget(get_socket_budget(Platform.ANDROID))
        await policy.execute(lambda: client.connect("user-1"))
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    ):
        self.max_retries: int = max_retries
        self.initial_delay: float = initial_delay
        self.max_delay: float = max_delay
        self.exponential_base: float = exponential_base
        self.jitter: bool = jitter
        self.retryable_exceptions: tuple[type[Exception], ...] = retryable_exceptions

    @classmethod
    def from_budget(
        cls,
        budget: NetworkBudget,
        max_attempts: int | None = None,
        jitter: bool = True,
        retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    ) -> "RetryPolicy":
        """Build a policy allowing ``max_attempts`` total attempts.

        Defaults to the budget's reconnect attempt count.
        """
        attempts = budget.max_reconnect_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        return cls(
            max_retries=attempts - 1,
            initial_delay=budget.reconnect_delay,
            max_delay=budget.reconnect_delay_max,
            exponential_base=budget.backoff_multiplier,
            jitter=jitter,
            retryable_exceptions=retryable_exceptions,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def execute(
        self,
        func: Callable[[], Coroutine[Any, Any, T]],
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> T:
        """Execute a function with this retry policy."""
        return await retry_with_exponential_backoff(
            func=func,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
            retryable_exceptions=self.retryable_exceptions,
            on_retry=on_retry,
        )

    def __call__(self, func: Callable[[], Coroutine[Any, Any, T]]) -> Callable[[], Coroutine[Any, Any, T]]:
        """Use as a decorator for zero-argument async functions."""

        @functools.wraps(func)
        async def wrapper() -> T:
            return await self.execute(func)

        return wrapper


__all__ = ["RetryPolicy", "compute_backoff_delay", "retry_with_exponential_backoff"]
