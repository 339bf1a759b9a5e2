"""
HTTP side of the chatnet network layer.

This module provides the endpoint table, the single-attempt deadline fetcher
and the router that falls back across endpoints.
"""

from chatnet.net.endpoints import Endpoint, EndpointTable
from chatnet.net.errors import (
    ChatNetError,
    ConnectCancelledError,
    ExhaustionError,
    HttpStatusError,
    NetworkUnavailableError,
    RealtimeConnectError,
)
from chatnet.net.fetch import RequestOptions, TimeoutFetch
from chatnet.net.outcome import (
    ApiResponse,
    HttpError,
    NetworkError,
    RequestOutcome,
    Success,
    Timeout,
)
from chatnet.net.router import RequestRouter

__all__ = [
    "ApiResponse",
    "ChatNetError",
    "ConnectCancelledError",
    "Endpoint",
    "EndpointTable",
    "ExhaustionError",
    "HttpError",
    "HttpStatusError",
    "NetworkError",
    "NetworkUnavailableError",
    "RealtimeConnectError",
    "RequestOptions",
    "RequestOutcome",
    "RequestRouter",
    "Success",
    "Timeout",
    "TimeoutFetch",
]
