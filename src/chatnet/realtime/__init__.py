"""
Realtime chat channel.

This module provides the Socket.IO-style client that keeps one persistent
connection to the backend, reconnects after drops and dispatches inbound
chat events to registered callbacks.
"""

from chatnet.realtime.client import ConnectionState, OutboundQueueEntry, RealtimeClient
from chatnet.realtime.events import (
    ChatMessageEvent,
    EventRegistry,
    PresenceEvent,
    RealtimeEvent,
)
from chatnet.realtime.transport import RealtimeTransport, WebSocketTransport

__all__ = [
    "ChatMessageEvent",
    "ConnectionState",
    "EventRegistry",
    "OutboundQueueEntry",
    "PresenceEvent",
    "RealtimeClient",
    "RealtimeEvent",
    "RealtimeTransport",
    "WebSocketTransport",
]
