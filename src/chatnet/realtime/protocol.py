"""
Engine.IO v4 / Socket.IO v5 text packet codec.

Only the subset the chat backend uses is supported: the default namespace,
JSON events, acknowledgement ids on decode, and no binary attachments.

Wire examples::

    0{"sid":"abc","pingInterval":25000,"pingTimeout":20000}   engine open
    2                                                         engine ping
    3                                                         engine pong
    40{"token":"t","userId":"u"}                              socket connect
    42["chat_message",{"message":"hi"}]                       socket event
    41                                                        socket disconnect
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

from chatnet.net.errors import ProtocolError


class EnginePacketType(IntEnum):
    OPEN = 0
    CLOSE = 1
    PING = 2
    PONG = 3
    MESSAGE = 4
    UPGRADE = 5
    NOOP = 6


class SocketPacketType(IntEnum):
    CONNECT = 0
    DISCONNECT = 1
    EVENT = 2
    ACK = 3
    CONNECT_ERROR = 4
    BINARY_EVENT = 5
    BINARY_ACK = 6


@dataclass(frozen=True)
class Packet:
    engine_type: EnginePacketType
    socket_type: Optional[SocketPacketType] = None
    data: Any = None
    namespace: str = "/"
    ack_id: Optional[int] = None

    @property
    def event_name(self) -> Optional[str]:
        if self.socket_type != SocketPacketType.EVENT or not isinstance(self.data, list) or not self.data:
            return None
        name = self.data[0]
        return name if isinstance(name, str) else None

    @property
    def event_args(self) -> list[Any]:
        if self.event_name is None:
            return []
        return list(self.data[1:])


def _socket_prefix(socket_type: SocketPacketType, namespace: str) -> str:
    prefix = f"{EnginePacketType.MESSAGE.value}{socket_type.value}"
    if namespace and namespace != "/":
        prefix += f"{namespace},"
    return prefix


def encode_connect(auth: Optional[dict[str, Any]] = None, namespace: str = "/") -> str:
    prefix = _socket_prefix(SocketPacketType.CONNECT, namespace)
    if auth is None:
        return prefix
    return prefix + json.dumps(auth, separators=(",", ":"))


def encode_event(event: str, payload: Any = None, namespace: str = "/") -> str:
    if not event:
        raise ValueError("event name must not be empty")
    args: list[Any] = [event]
    if payload is not None:
        args.append(payload)
    return _socket_prefix(SocketPacketType.EVENT, namespace) + json.dumps(args, separators=(",", ":"), default=str)


def encode_disconnect(namespace: str = "/") -> str:
    return _socket_prefix(SocketPacketType.DISCONNECT, namespace)


def encode_ping() -> str:
    return str(EnginePacketType.PING.value)


def encode_pong() -> str:
    return str(EnginePacketType.PONG.value)


def _decode_json(text: str, raw: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON in packet {raw[:80]!r}: {e}") from e


def decode_packet(raw: str | bytes) -> Packet:
    """Decode one text frame.

    Raises:
        ProtocolError: On empty frames, unknown packet types, bad JSON or
            binary packets.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError("Binary frames are not supported") from e
    if not raw:
        raise ProtocolError("Empty packet")

    try:
        engine_type = EnginePacketType(int(raw[0]))
    except ValueError:
        raise ProtocolError(f"Unknown engine packet type in {raw[:80]!r}") from None

    body = raw[1:]
    if engine_type != EnginePacketType.MESSAGE:
        data: Any = body or None
        if engine_type == EnginePacketType.OPEN:
            data = _decode_json(body, raw)
        return Packet(engine_type=engine_type, data=data)

    if not body:
        raise ProtocolError("Message packet without socket payload")
    try:
        socket_type = SocketPacketType(int(body[0]))
    except ValueError:
        raise ProtocolError(f"Unknown socket packet type in {raw[:80]!r}") from None
    if socket_type in (SocketPacketType.BINARY_EVENT, SocketPacketType.BINARY_ACK):
        raise ProtocolError("Binary packets are not supported")

    rest = body[1:]
    namespace = "/"
    if rest.startswith("/"):
        ns, sep, rest = rest.partition(",")
        namespace = ns
        if not sep:
            rest = ""

    digits = 0
    while digits < len(rest) and rest[digits].isdigit():
        digits += 1
    ack_id = int(rest[:digits]) if digits else None
    data = _decode_json(rest[digits:], raw)

    if socket_type in (SocketPacketType.EVENT, SocketPacketType.ACK) and not isinstance(data, list):
        raise ProtocolError(f"Event packet payload must be a list: {raw[:80]!r}")

    return Packet(
        engine_type=engine_type,
        socket_type=socket_type,
        data=data,
        namespace=namespace,
        ack_id=ack_id,
    )
