"""
Result types for a single HTTP attempt and for a routed request.

A single attempt against one base URL yields one of four outcomes. Only
``NetworkError`` and ``Timeout`` make the router move on to the next endpoint;
``Success`` and ``HttpError`` mean the endpoint was reachable.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from chatnet.net.errors import (
    ChatNetError,
    HttpStatusError,
    NetworkUnavailableError,
)


class Success(BaseModel):
    kind: Literal["success"] = "success"
    status_code: int
    body: Any = Field(default_factory=dict)

    @property
    def is_reachable(self) -> bool:
        return True


class HttpError(BaseModel):
    kind: Literal["http_error"] = "http_error"
    status_code: int
    body: Any = Field(default_factory=dict)

    @property
    def is_reachable(self) -> bool:
        return True


class NetworkError(BaseModel):
    kind: Literal["network_error"] = "network_error"
    message: str

    @property
    def is_reachable(self) -> bool:
        return False


class Timeout(BaseModel):
    kind: Literal["timeout"] = "timeout"
    timeout_seconds: float = 0.0

    @property
    def is_reachable(self) -> bool:
        return False


RequestOutcome = Annotated[
    Union[Success, HttpError, NetworkError, Timeout],
    Field(discriminator="kind"),
]


class ApiResponse(BaseModel):
    """What callers of the router receive.

    ``status`` is 0 when no endpoint could be reached. ``offline`` marks a
    canned payload substituted for an unreachable backend.
    """

    data: Any = None
    error: Optional[str] = None
    status: int = 0
    offline: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status < 400

    def raise_for_error(self) -> Any:
        """Return ``data`` or raise the matching :class:`ChatNetError`."""
        if self.ok:
            return self.data
        message = self.error or f"HTTP {self.status}"
        if self.status == 0:
            raise NetworkUnavailableError(message)
        if self.status >= 400:
            raise HttpStatusError(self.status, message)
        raise ChatNetError(message)


__all__ = [
    "ApiResponse",
    "HttpError",
    "NetworkError",
    "RequestOutcome",
    "Success",
    "Timeout",
]
