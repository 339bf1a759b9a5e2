"""
Persistent realtime client for live chat events.

Features:
- Endpoint fallback on connect, in endpoint table order
- Automatic reconnection with capped exponential backoff after a drop
- Outbound queue flushed in order once the connection is (re)established
- Isolated callback dispatch for inbound and lifecycle events
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from chatnet.concurrency.retry import RetryPolicy
from chatnet.concurrency.timeout import with_timeout
from chatnet.config.logging_config import get_logger
from chatnet.config.network import (
    NETWORK_ERROR_MESSAGES,
    NetworkBudget,
    Platform,
    get_platform_headers,
    get_socket_budget,
)
from chatnet.net.endpoints import EndpointTable
from chatnet.net.errors import ConnectCancelledError, RealtimeConnectError
from chatnet.realtime.events import (
    LIFECYCLE_EVENTS,
    EventCallback,
    EventName,
    EventRegistry,
    RealtimeEvent,
    parse_payload,
)
from chatnet.realtime.transport import (
    TRANSPORT_ERRORS,
    RealtimeTransport,
    TransportFactory,
    WebSocketTransport,
    debug_dump,
)

log = get_logger(__name__)

DEFAULT_QUEUE_CAPACITY = 1000


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class OutboundQueueEntry:
    event_name: str
    payload: Any = None
    enqueued_at: float = field(default_factory=time.time)


class RealtimeClient:
    """
    One persistent connection to the realtime endpoint.

    ``emit`` never blocks and never raises: while disconnected, events go to a
    bounded FIFO queue (oldest dropped when full) that is flushed right after
    the next successful connect. While connected, events go through a single
    writer task, so the wire order always matches the ``emit`` order.
    """

    def __init__(
        self,
        table: EndpointTable,
        budget: Optional[NetworkBudget] = None,
        platform: Platform = Platform.DESKTOP,
        transport_factory: Optional[TransportFactory] = None,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        jitter: bool = True,
    ):
        """
        Args:
            table: Endpoints to try, in order.
            budget: Handshake deadline and reconnect limits; defaults to the
                platform's socket budget.
            platform: Selects the default budget and handshake headers.
            transport_factory: Creates a fresh transport per attempt.
            queue_capacity: Max events buffered while disconnected.
            jitter: Randomize reconnect delays.
        """
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be >= 1")
        self.table = table
        self.platform = platform
        self.budget = budget or get_socket_budget(platform)
        self.transport_factory: TransportFactory = transport_factory or (
            lambda: WebSocketTransport(extra_headers=get_platform_headers(platform))
        )
        self.queue_capacity = queue_capacity
        self.jitter = jitter

        self.events = EventRegistry()
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.dropped_count = 0

        self._queue: deque[OutboundQueueEntry] = deque()
        self._transport: Optional[RealtimeTransport] = None
        self._working_url: Optional[str] = None
        self._identity: Optional[str] = None
        self._credential: Optional[str] = None

        self._outbox: Optional[asyncio.Queue[OutboundQueueEntry]] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()
        # Bumped by disconnect(); a connect started under an older value stands down
        self._generation = 0

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def connection_status(self) -> str:
        return self.state.value

    @property
    def sid(self) -> Optional[str]:
        if self._transport is None or not self.is_connected:
            return None
        return self._transport.sid

    @property
    def working_url(self) -> Optional[str]:
        return self._working_url

    def reset_working_url(self) -> None:
        self._working_url = None

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def pending_events(self) -> list[OutboundQueueEntry]:
        return list(self._queue)

    @property
    def disconnect_generation(self) -> int:
        """Number of calls to ``disconnect()`` so far."""
        return self._generation

    @property
    def is_reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _auth_payload(self) -> dict[str, Any]:
        return {"token": self._credential or "anonymous", "userId": self._identity}

    async def connect(self, identity: str, credential: Optional[str] = None) -> None:
        """
        Connect to the first endpoint that accepts the handshake.

        Overlapping calls run one at a time. A call made while already
        connected with the same identity and credential returns at once.

        Raises:
            RealtimeConnectError: If every endpoint fails.
            ConnectCancelledError: If ``disconnect()`` was called while this
                connect was waiting or in flight.
        """
        if not identity:
            raise ValueError("identity must not be empty")

        generation = self._generation
        async with self._connect_lock:
            if generation != self._generation:
                raise ConnectCancelledError("Realtime connect cancelled by disconnect")
            if self.is_connected and (identity, credential) == (self._identity, self._credential):
                log.debug(f"Realtime channel already connected for {identity}")
                return

            await self._cancel_reconnect()
            if self._transport is not None:
                self._requeue_undelivered()
                await self._teardown_transport()

            self._identity = identity
            self._credential = credential
            self.state = ConnectionState.CONNECTING
            log.info(f"Connecting realtime channel for {identity}")

            try:
                base_url, transport = await self._open_first_available()
            except RealtimeConnectError as e:
                self.state = ConnectionState.DISCONNECTED
                if generation != self._generation:
                    raise ConnectCancelledError("Realtime connect cancelled by disconnect") from e
                raise

            if generation != self._generation:
                await self._close_quietly(transport)
                self.state = ConnectionState.DISCONNECTED
                raise ConnectCancelledError("Realtime connect cancelled by disconnect")

            self._on_connected(base_url, transport)

    async def _open_first_available(self) -> tuple[str, RealtimeTransport]:
        """Try each endpoint in table order; return the first open transport."""
        failures: dict[str, str] = {}
        auth = self._auth_payload()

        for endpoint in self.table:
            transport = self.transport_factory()
            try:
                await with_timeout(
                    lambda: transport.open(endpoint.url, auth),
                    timeout_seconds=self.budget.timeout,
                )
            except TRANSPORT_ERRORS as e:
                failures[endpoint.url] = str(e) or type(e).__name__
                log.warning(f"Realtime connection to {endpoint.url} failed: {failures[endpoint.url]}")
                await self._close_quietly(transport)
                continue
            return endpoint.url, transport

        last_error = next(reversed(failures.values()), "no endpoints")
        raise RealtimeConnectError(
            f"{NETWORK_ERROR_MESSAGES['SOCKET_CONNECTION_FAILED']} Last error: {last_error}",
            failures,
        )

    def _on_connected(self, base_url: str, transport: RealtimeTransport) -> None:
        self._transport = transport
        self._working_url = base_url
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        log.info(f"Realtime channel connected to {base_url}")

        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._writer_loop(transport, self._outbox))
        self._receive_task = asyncio.create_task(self._receive_loop(transport))

        while self._queue:
            self._outbox.put_nowait(self._queue.popleft())
        self.emit(RealtimeEvent.USER_ONLINE.value, {"userId": self._identity})
        self.events.dispatch(RealtimeEvent.CONNECT)

    async def disconnect(self) -> None:
        """Tear down the connection on request; no reconnect follows.

        Any connect still waiting or in flight fails with
        ``ConnectCancelledError`` instead of connecting.
        """
        log.info("Disconnecting realtime channel")
        self._generation += 1
        await self._cancel_reconnect()
        await self._teardown_transport()
        self._queue.clear()
        self.reconnect_attempts = 0
        self.state = ConnectionState.DISCONNECTED

    async def _teardown_transport(self) -> None:
        transport = self._transport
        self._transport = None
        current = asyncio.current_task()
        for task in (self._receive_task, self._writer_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._receive_task = None
        self._writer_task = None
        self._outbox = None
        if transport is not None:
            await self._close_quietly(transport)

    async def _close_quietly(self, transport: RealtimeTransport) -> None:
        try:
            await transport.close()
        except TRANSPORT_ERRORS as e:
            log.debug(f"Error closing transport: {e}")

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _on_connection_lost(
        self,
        transport: RealtimeTransport,
        reason: str,
        unsent: Optional[OutboundQueueEntry] = None,
    ) -> None:
        """Handle an unexpected drop of ``transport``."""
        if transport is not self._transport or self.state != ConnectionState.CONNECTED:
            return
        log.warning(f"Realtime connection lost: {reason}")

        self._requeue_undelivered(unsent)
        self.state = ConnectionState.DISCONNECTED
        self.events.dispatch(RealtimeEvent.DISCONNECT)
        self._reconnect_task = asyncio.create_task(self._reconnect())

    def _requeue_undelivered(self, unsent: Optional[OutboundQueueEntry] = None) -> None:
        """Move events the writer has not sent back to the front of the queue, in order."""
        undelivered: list[OutboundQueueEntry] = [unsent] if unsent is not None else []
        if self._outbox is not None:
            while not self._outbox.empty():
                undelivered.append(self._outbox.get_nowait())
                self._outbox.task_done()
        for entry in reversed(undelivered):
            self._queue.appendleft(entry)
        self._trim_queue()

    async def _reconnect(self) -> None:
        await self._teardown_transport()
        self.state = ConnectionState.CONNECTING

        policy = RetryPolicy.from_budget(
            self.budget,
            jitter=self.jitter,
            retryable_exceptions=(RealtimeConnectError,),
        )

        def _count(attempt: int, error: Exception, delay: float) -> None:
            self.reconnect_attempts = attempt
            log.info(f"Reconnect attempt {attempt}/{policy.max_attempts} failed, next in {delay:.2f}s")

        try:
            base_url, transport = await policy.execute(self._open_first_available, on_retry=_count)
        except RealtimeConnectError as e:
            self.reconnect_attempts = policy.max_attempts
            self.state = ConnectionState.DISCONNECTED
            self._reconnect_task = None
            log.error(f"Giving up on realtime reconnect after {policy.max_attempts} attempts")
            self.events.dispatch(
                RealtimeEvent.ERROR,
                RealtimeConnectError(
                    f"Reconnect failed after {policy.max_attempts} attempts: {e}",
                    e.failures,
                ),
            )
            return

        self._reconnect_task = None
        self._on_connected(base_url, transport)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def emit(self, event_name: EventName, payload: Any = None) -> None:
        """Send now if connected, otherwise queue for the next connect."""
        name = event_name.value if isinstance(event_name, RealtimeEvent) else str(event_name)
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        entry = OutboundQueueEntry(event_name=name, payload=payload)

        if self.is_connected and self._outbox is not None:
            self._outbox.put_nowait(entry)
            return

        self._queue.append(entry)
        self._trim_queue()
        log.debug(f"Queued {name} while {self.state.value} ({len(self._queue)} pending)")

    def _trim_queue(self) -> None:
        while len(self._queue) > self.queue_capacity:
            dropped = self._queue.popleft()
            self.dropped_count += 1
            log.warning(f"Outbound queue full, dropping oldest {dropped.event_name} event")

    async def _writer_loop(self, transport: RealtimeTransport, outbox: "asyncio.Queue[OutboundQueueEntry]") -> None:
        while True:
            entry = await outbox.get()
            try:
                await transport.send(entry.event_name, entry.payload)
                log.debug(f"Sent {debug_dump(entry.event_name, entry.payload)}")
            except asyncio.CancelledError:
                # Torn down mid-send: the entry goes ahead of anything already requeued
                outbox.task_done()
                self._queue.appendleft(entry)
                self._trim_queue()
                raise
            except TRANSPORT_ERRORS as e:
                log.error(f"Failed to send {entry.event_name}: {e}")
                outbox.task_done()
                self._on_connection_lost(transport, f"send failed: {e}", unsent=entry)
                return
            outbox.task_done()

    async def drain(self) -> None:
        """Wait until every event handed to the writer has been sent."""
        if self._outbox is not None:
            await self._outbox.join()

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    async def _receive_loop(self, transport: RealtimeTransport) -> None:
        reason = "connection closed"
        try:
            async for event_name, payload in transport.receive():
                self._handle_inbound(event_name, payload)
        except asyncio.CancelledError:
            raise
        except TRANSPORT_ERRORS as e:
            reason = str(e) or type(e).__name__
        self._on_connection_lost(transport, reason)

    def _handle_inbound(self, event_name: str, payload: Any) -> None:
        try:
            event = RealtimeEvent(event_name)
        except ValueError:
            log.debug(f"Ignoring unknown event {event_name}")
            return
        if event in LIFECYCLE_EVENTS:
            log.debug(f"Ignoring server-sent lifecycle event {event_name}")
            return
        self.events.dispatch(event, parse_payload(event, payload))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on(self, event: EventName, callback: EventCallback) -> None:
        self.events.add(event, callback)

    def off(self, event: EventName, callback: EventCallback) -> None:
        self.events.remove(event, callback)

    # ------------------------------------------------------------------
    # Chat helpers
    # ------------------------------------------------------------------

    def send_chat_message(self, message: str, user_id: str) -> None:
        self.emit(
            RealtimeEvent.CHAT_MESSAGE,
            {"message": message, "userId": user_id, "timestamp": _utc_now_iso()},
        )

    def send_typing(self, user_id: str) -> None:
        self.emit(RealtimeEvent.USER_TYPING, {"userId": user_id})

    def send_stop_typing(self, user_id: str) -> None:
        self.emit(RealtimeEvent.USER_STOP_TYPING, {"userId": user_id})

    def join_room(self, room_id: str) -> None:
        self.emit("join_room", {"roomId": room_id})

    def leave_room(self, room_id: str) -> None:
        self.emit("leave_room", {"roomId": room_id})


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
