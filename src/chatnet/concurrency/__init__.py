from .retry import RetryPolicy, compute_backoff_delay, retry_with_exponential_backoff
from .timeout import TimeoutError, with_timeout

__all__ = [
    "RetryPolicy",
    "TimeoutError",
    "compute_backoff_delay",
    "retry_with_exponential_backoff",
    "with_timeout",
]
