"""
Realtime event names, payload models and the callback registry.
"""

import asyncio
import inspect
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatnet.config.logging_config import get_logger

log = get_logger(__name__)


class RealtimeEvent(str, Enum):
    CHAT_MESSAGE = "chat_message"
    USER_TYPING = "user_typing"
    USER_STOP_TYPING = "user_stop_typing"
    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"


# Events generated by the client itself rather than received from the server
LIFECYCLE_EVENTS = frozenset({RealtimeEvent.CONNECT, RealtimeEvent.DISCONNECT, RealtimeEvent.ERROR})


class ChatMessageEvent(BaseModel):
    """A chat message pushed by the server."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    message: str
    response: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_typing: bool = Field(default=False, alias="isTyping")


class PresenceEvent(BaseModel):
    """Typing and online/offline notifications for one user."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")


EVENT_PAYLOADS: dict[RealtimeEvent, type[BaseModel]] = {
    RealtimeEvent.CHAT_MESSAGE: ChatMessageEvent,
    RealtimeEvent.USER_TYPING: PresenceEvent,
    RealtimeEvent.USER_STOP_TYPING: PresenceEvent,
    RealtimeEvent.USER_ONLINE: PresenceEvent,
    RealtimeEvent.USER_OFFLINE: PresenceEvent,
}


def parse_payload(event: RealtimeEvent, payload: Any) -> Any:
    """Validate an inbound payload into its model.

    Presence events may carry a bare user id string. Payloads that do not
    match the model are passed through unchanged.
    """
    model = EVENT_PAYLOADS.get(event)
    if model is None:
        return payload
    if model is PresenceEvent and isinstance(payload, (str, int)):
        payload = {"userId": str(payload)}
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        log.debug(f"Passing raw {event.value} payload, validation failed: {e}")
        return payload


EventName = Union[RealtimeEvent, str]
EventCallback = Callable[..., Any]


def to_event(event: EventName) -> RealtimeEvent:
    try:
        return RealtimeEvent(event)
    except ValueError:
        raise ValueError(f"Unknown realtime event: {event!r}") from None


class EventRegistry:
    """
    Maps each event to its callbacks in registration order.

    Dispatch isolates callbacks from each other: a callback that raises is
    logged and the remaining callbacks still run. Coroutine callbacks are
    scheduled on the running loop.
    """

    def __init__(self):
        self._listeners: dict[RealtimeEvent, list[EventCallback]] = {}
        self._pending: set[asyncio.Task] = set()

    def add(self, event: EventName, callback: EventCallback) -> None:
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._listeners.setdefault(to_event(event), []).append(callback)

    def remove(self, event: EventName, callback: EventCallback) -> bool:
        """Remove the first registration of ``callback`` (by identity)."""
        listeners = self._listeners.get(to_event(event))
        if not listeners:
            return False
        for index, registered in enumerate(listeners):
            if registered is callback:
                del listeners[index]
                return True
        return False

    def listeners(self, event: EventName) -> list[EventCallback]:
        return list(self._listeners.get(to_event(event), []))

    def clear(self) -> None:
        self._listeners.clear()

    def dispatch(self, event: RealtimeEvent, *args: Any) -> int:
        """Invoke every callback for ``event``; return how many raised."""
        failures = 0
        for callback in self.listeners(event):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception as e:
                failures += 1
                log.error(f"Error in {event.value} listener: {e}", exc_info=True)
        return failures

    def _schedule(self, event: RealtimeEvent, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log.error(f"Error in async {event.value} listener: {t.exception()}")

        task.add_done_callback(_done)
