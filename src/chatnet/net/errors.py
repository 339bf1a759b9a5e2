class ChatNetError(Exception):
    """Base class for errors raised by the chatnet network layer."""


class NetworkUnavailableError(ChatNetError):
    """The backend could not be reached (refused, DNS or TLS failure)."""


class HttpStatusError(ChatNetError):
    """The backend was reached and answered with an error status."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


class ExhaustionError(NetworkUnavailableError):
    """Every candidate endpoint failed with a connectivity-class error.

    ``failures`` maps each base URL tried to the reason it failed, in the
    order the endpoints were attempted.
    """

    def __init__(self, path: str, failures: dict[str, str], message: str | None = None):
        self.path = path
        self.failures = dict(failures)
        super().__init__(message or f"All endpoints failed for {path}")


class RealtimeConnectError(ChatNetError):
    """No realtime endpoint accepted the connection handshake."""

    def __init__(self, message: str, failures: dict[str, str] | None = None):
        self.failures = dict(failures or {})
        super().__init__(message)


class ProtocolError(ChatNetError):
    """A realtime frame could not be decoded."""


class ConnectCancelledError(ChatNetError):
    """A realtime connect was overtaken by a call to ``disconnect()``."""
