"""
Realtime transports.

A transport carries named events over one persistent connection. The
realtime client only talks to the :class:`RealtimeTransport` protocol, so tests
can plug in an in-memory transport and the production build uses
:class:`WebSocketTransport`, which speaks Socket.IO over a raw websocket.
"""

import asyncio
import json
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

from chatnet.concurrency.timeout import TimeoutError
from chatnet.config.logging_config import get_logger
from chatnet.net.errors import ChatNetError, ProtocolError, RealtimeConnectError
from chatnet.net.urls import to_websocket_url
from chatnet.realtime.protocol import (
    EnginePacketType,
    SocketPacketType,
    decode_packet,
    encode_connect,
    encode_disconnect,
    encode_event,
    encode_pong,
)

log = get_logger(__name__)

# Failures that mean "this endpoint is not usable right now"
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    TimeoutError,
    ChatNetError,
    WebSocketException,
)


class RealtimeTransport(Protocol):
    sid: Optional[str]

    async def open(self, base_url: str, auth: dict[str, Any]) -> None:
        """Connect and authenticate; raise on failure."""
        ...

    async def send(self, event: str, payload: Any) -> None: ...

    def receive(self) -> AsyncIterator[tuple[str, Any]]:
        """Yield inbound ``(event, payload)`` pairs until the connection ends."""
        ...

    async def close(self) -> None: ...


TransportFactory = Callable[[], RealtimeTransport]


class WebSocketTransport:
    """
    Socket.IO client transport over ``websockets``.

    Performs the Engine.IO open handshake, sends the Socket.IO CONNECT packet
    with the auth payload and waits for the server to accept it. Engine.IO
    pings are answered inside :meth:`receive`.
    """

    def __init__(self, extra_headers: Optional[dict[str, str]] = None):
        self.extra_headers = extra_headers or {}
        self.websocket: Optional["ClientConnection"] = None
        self.sid: Optional[str] = None
        self.engine_sid: Optional[str] = None
        self.ping_interval: float = 25.0

    async def open(self, base_url: str, auth: dict[str, Any]) -> None:
        url = to_websocket_url(base_url)
        log.debug(f"Opening websocket to {url}")
        # Engine.IO runs its own ping/pong, so disable the websocket keepalive
        self.websocket = await websockets.connect(
            url,
            ping_interval=None,
            open_timeout=None,
            additional_headers=self.extra_headers or None,
        )
        try:
            await self._handshake(auth)
        except BaseException:
            await self.close()
            raise

    async def _handshake(self, auth: dict[str, Any]) -> None:
        assert self.websocket is not None

        opened = decode_packet(await self.websocket.recv())
        if opened.engine_type != EnginePacketType.OPEN or not isinstance(opened.data, dict):
            raise ProtocolError(f"Expected engine open packet, got {opened.engine_type.name}")
        self.engine_sid = opened.data.get("sid")
        self.ping_interval = float(opened.data.get("pingInterval", 25000)) / 1000.0

        await self.websocket.send(encode_connect(auth))

        while True:
            packet = decode_packet(await self.websocket.recv())
            if packet.engine_type == EnginePacketType.PING:
                await self.websocket.send(encode_pong())
                continue
            if packet.socket_type == SocketPacketType.CONNECT:
                data = packet.data if isinstance(packet.data, dict) else {}
                self.sid = data.get("sid")
                log.debug(f"Socket.IO session {self.sid} established")
                return
            if packet.socket_type == SocketPacketType.CONNECT_ERROR:
                data = packet.data if isinstance(packet.data, dict) else {}
                raise RealtimeConnectError(f"Server rejected connection: {data.get('message', packet.data)}")
            if packet.engine_type == EnginePacketType.CLOSE:
                raise RealtimeConnectError("Server closed the connection during handshake")

    async def send(self, event: str, payload: Any) -> None:
        if self.websocket is None:
            raise RealtimeConnectError("Transport is not open")
        await self.websocket.send(encode_event(event, payload))

    async def receive(self) -> AsyncIterator[tuple[str, Any]]:
        if self.websocket is None:
            return
        try:
            async for raw in self.websocket:
                try:
                    packet = decode_packet(raw)
                except ProtocolError as e:
                    log.warning(f"Dropping malformed frame: {e}")
                    continue

                if packet.engine_type == EnginePacketType.PING:
                    await self.websocket.send(encode_pong())
                elif packet.engine_type == EnginePacketType.CLOSE:
                    log.info("Server closed the engine session")
                    return
                elif packet.socket_type == SocketPacketType.DISCONNECT:
                    log.info("Server disconnected the socket")
                    return
                elif packet.event_name is not None:
                    args = packet.event_args
                    yield packet.event_name, (args[0] if len(args) == 1 else (args or None))
        except ConnectionClosed as e:
            log.warning(f"Websocket closed: {e}")

    async def close(self) -> None:
        websocket = self.websocket
        self.websocket = None
        if websocket is None:
            return
        try:
            await websocket.send(encode_disconnect())
        except WebSocketException as e:
            log.debug(f"Could not send disconnect packet: {e}")
        await websocket.close()


def debug_dump(event: str, payload: Any) -> str:
    """Short printable form of an event for log lines."""
    text = json.dumps(payload, default=str)
    if len(text) > 200:
        text = text[:200] + "..."
    return f"{event} {text}"
