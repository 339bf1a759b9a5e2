"""
Platform-dependent network budgets.

The HTTP and realtime layers read their deadlines, retry counts and extra
request headers from here. Android gets the longer budgets because its
network stack is slow to warm up after the app is resumed.
"""

from dataclasses import dataclass
from enum import Enum


class Platform(str, Enum):
    ANDROID = "android"
    IOS = "ios"
    WEB = "web"
    DESKTOP = "desktop"

    @classmethod
    def parse(cls, value: "str | Platform | None") -> "Platform":
        if isinstance(value, Platform):
            return value
        if not value:
            return cls.DESKTOP
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown platform {value!r}; expected one of "
                f"{', '.join(p.value for p in cls)}"
            ) from None


@dataclass(frozen=True)
class NetworkBudget:
    """Timing and retry budget for one platform.

    Times are in seconds.
    """

    timeout: float
    retry_attempts: int
    retry_delay: float
    reconnect_delay_max: float
    max_reconnect_attempts: int
    reconnect_delay: float = 1.0
    backoff_multiplier: float = 2.0


def get_network_budget(platform: Platform) -> NetworkBudget:
    """Budget for request/response HTTP calls."""
    is_android = platform == Platform.ANDROID
    return NetworkBudget(
        timeout=45.0 if is_android else 10.0,
        retry_attempts=3 if is_android else 2,
        retry_delay=1.0,
        reconnect_delay_max=5.0,
        max_reconnect_attempts=5,
    )


def get_socket_budget(platform: Platform) -> NetworkBudget:
    """Budget for the realtime channel; `timeout` is the handshake deadline."""
    is_android = platform == Platform.ANDROID
    return NetworkBudget(
        timeout=15.0 if is_android else 10.0,
        retry_attempts=3 if is_android else 2,
        retry_delay=1.0,
        reconnect_delay_max=5.0,
        max_reconnect_attempts=5,
    )


def get_platform_headers(platform: Platform) -> dict[str, str]:
    """Extra request headers for platforms that need keep-alive hints."""
    if platform != Platform.ANDROID:
        return {}
    return {
        "User-Agent": "ChatApp-Android/1.0",
        "Accept": "application/json",
        "Connection": "keep-alive",
        "Keep-Alive": "timeout=45, max=1000",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }


NETWORK_ERROR_MESSAGES = {
    "TIMEOUT": "Request timed out - server not responding",
    "NETWORK_ERROR": "Network error. Please check your connection.",
    "CONNECTION_FAILED": (
        "All connection attempts failed. Please check your network connection "
        "and ensure the backend server is running."
    ),
    "SOCKET_CONNECTION_FAILED": "All Socket.IO URLs failed. Please check your connection.",
    "OFFLINE_MODE": "Running in offline mode. Some features may be limited.",
    "UNKNOWN_ERROR": "Unknown error occurred",
}


__all__ = [
    "NETWORK_ERROR_MESSAGES",
    "NetworkBudget",
    "Platform",
    "get_network_budget",
    "get_platform_headers",
    "get_socket_budget",
]
