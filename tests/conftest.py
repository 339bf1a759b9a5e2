import asyncio
from typing import Any, AsyncIterator, Callable, Optional

import httpx
import pytest

from chatnet.config.environment import Environment
from chatnet.config.network import NetworkBudget
from chatnet.net.endpoints import EndpointTable
from chatnet.net.fetch import TimeoutFetch

PRIMARY = "http://primary.test"
FALLBACK = "http://fallback.test"

_DROP = object()


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Keep settings files and CHATNET_* variables from leaking into tests."""
    monkeypatch.setattr("chatnet.config.environment.load_dotenv_files", lambda: None)
    monkeypatch.setattr("chatnet.config.environment.load_settings", lambda: {})
    for key in (
        "CHATNET_BASE_URL",
        "CHATNET_FALLBACK_URLS",
        "CHATNET_PLATFORM",
        "CHATNET_IS_EMULATOR",
        "CHATNET_OFFLINE_MODE",
        "CHATNET_QUEUE_CAPACITY",
    ):
        monkeypatch.delenv(key, raising=False)
    Environment.reset()
    yield
    Environment.reset()


@pytest.fixture
def table() -> EndpointTable:
    return EndpointTable.from_urls(PRIMARY, [FALLBACK])


@pytest.fixture
def fast_budget() -> NetworkBudget:
    return NetworkBudget(
        timeout=0.5,
        retry_attempts=2,
        retry_delay=0.001,
        reconnect_delay_max=0.01,
        max_reconnect_attempts=3,
        reconnect_delay=0.001,
    )


@pytest.fixture
def make_fetch():
    """Build a TimeoutFetch whose HTTP calls go to ``handler``."""

    def _make(handler: Callable[[httpx.Request], Any], **kwargs) -> TimeoutFetch:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return TimeoutFetch(client=client, **kwargs)

    return _make


class FakeTransport:
    """In-memory realtime transport driven by a FakeNetwork."""

    def __init__(self, network: "FakeNetwork"):
        self.network = network
        self.sid: Optional[str] = None
        self.url: Optional[str] = None
        self.auth: Optional[dict[str, Any]] = None
        self.sent: list[tuple[str, Any]] = []
        self.closed = False
        self.fail_sends = False
        self.stall_sends = False
        self.stalled: list[str] = []
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def open(self, base_url: str, auth: dict[str, Any]) -> None:
        self.network.opens.append(base_url)
        if self.network.hang:
            await asyncio.sleep(3600)
        if self.network.refuse_all or base_url in self.network.refused:
            raise ConnectionRefusedError(f"connection refused by {base_url}")
        self.url = base_url
        self.auth = auth
        self.sid = f"sid-{len(self.network.opens)}"

    async def send(self, event: str, payload: Any) -> None:
        if self.fail_sends:
            raise ConnectionResetError("connection reset")
        if self.stall_sends:
            self.stalled.append(event)
            await asyncio.sleep(3600)
        self.sent.append((event, payload))

    async def receive(self) -> AsyncIterator[tuple[str, Any]]:
        while True:
            item = await self._inbox.get()
            if item is _DROP:
                return
            yield item

    async def close(self) -> None:
        self.closed = True

    def push(self, event: str, payload: Any = None) -> None:
        self._inbox.put_nowait((event, payload))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._inbox.put_nowait(_DROP)


class FakeNetwork:
    def __init__(self):
        self.transports: list[FakeTransport] = []
        self.opens: list[str] = []
        self.refused: set[str] = set()
        self.refuse_all = False
        self.hang = False

    def factory(self) -> FakeTransport:
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport

    @property
    def connected(self) -> list[FakeTransport]:
        return [t for t in self.transports if t.sid is not None]

    @property
    def current(self) -> FakeTransport:
        return self.connected[-1]


@pytest.fixture
def fake_network() -> FakeNetwork:
    return FakeNetwork()
