import asyncio

import pytest

from chatnet.net.errors import ConnectCancelledError, RealtimeConnectError
from chatnet.realtime.client import ConnectionState, RealtimeClient
from chatnet.realtime.events import ChatMessageEvent


@pytest.fixture
def client(table, fast_budget, fake_network):
    return RealtimeClient(table, budget=fast_budget, transport_factory=fake_network.factory, jitter=False)


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connects_to_primary_and_announces_presence(self, client, fake_network):
        connected = []
        client.on("connect", lambda: connected.append(True))

        await client.connect("user-1", "token-1")
        await client.drain()

        transport = fake_network.current
        assert client.is_connected
        assert client.connection_status == "connected"
        assert client.working_url == "http://primary.test"
        assert client.sid == transport.sid
        assert transport.auth == {"token": "token-1", "userId": "user-1"}
        assert transport.sent == [("user_online", {"userId": "user-1"})]
        assert connected == [True]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_falls_back_to_next_endpoint(self, client, fake_network):
        fake_network.refused.add("http://primary.test")

        await client.connect("user-1")

        assert client.working_url == "http://fallback.test"
        assert fake_network.opens == ["http://primary.test", "http://fallback.test"]
        assert fake_network.transports[0].closed
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_handshake_deadline_moves_on(self, table, fake_network, fast_budget):
        fake_network.hang = True
        client = RealtimeClient(table, budget=fast_budget, transport_factory=fake_network.factory)

        with pytest.raises(RealtimeConnectError) as exc_info:
            await client.connect("user-1")

        assert fake_network.opens == ["http://primary.test", "http://fallback.test"]
        assert set(exc_info.value.failures) == {"http://primary.test", "http://fallback.test"}

    @pytest.mark.asyncio
    async def test_all_endpoints_refused(self, client, fake_network):
        fake_network.refuse_all = True

        with pytest.raises(RealtimeConnectError) as exc_info:
            await client.connect("user-1")

        assert "All Socket.IO URLs failed" in str(exc_info.value)
        assert client.state == ConnectionState.DISCONNECTED
        assert client.sid is None

    @pytest.mark.asyncio
    async def test_identity_required(self, client):
        with pytest.raises(ValueError):
            await client.connect("")

    @pytest.mark.asyncio
    async def test_overlapping_connects_share_one_connection(self, client, fake_network):
        await asyncio.gather(client.connect("user-1"), client.connect("user-1"))
        await client.drain()

        assert fake_network.opens == ["http://primary.test"]
        assert len(fake_network.connected) == 1
        assert fake_network.current.sent == [("user_online", {"userId": "user-1"})]

        await client.disconnect()
        assert all(t.closed for t in fake_network.transports)

    @pytest.mark.asyncio
    async def test_connect_as_other_identity_replaces_connection(self, client, fake_network):
        await asyncio.gather(client.connect("user-1"), client.connect("user-2"))

        first, second = fake_network.connected
        assert first.closed
        assert not second.closed
        assert second.auth["userId"] == "user-2"
        assert client.sid == second.sid

        await client.disconnect()
        assert second.closed

    @pytest.mark.asyncio
    async def test_disconnect_cancels_connect_in_flight(self, table, fast_budget, fake_network):
        fake_network.hang = True
        client = RealtimeClient(table, budget=fast_budget, transport_factory=fake_network.factory)
        connecting = asyncio.create_task(client.connect("user-1"))
        await wait_for(lambda: fake_network.opens)

        # The fallback would accept, but the disconnect came first
        fake_network.hang = False
        await client.disconnect()

        with pytest.raises(ConnectCancelledError):
            await connecting
        assert client.state == ConnectionState.DISCONNECTED
        assert fake_network.opens == ["http://primary.test", "http://fallback.test"]
        assert all(t.closed for t in fake_network.connected)


class TestOutboundQueue:
    @pytest.mark.asyncio
    async def test_queued_events_flush_in_order_on_connect(self, client, fake_network):
        client.send_typing("user-1")
        client.join_room("r1")
        client.leave_room("r0")
        client.send_stop_typing("user-1")
        assert client.queue_size == 4

        await client.connect("user-1")
        await client.drain()

        names = [name for name, _ in fake_network.current.sent]
        assert names == ["user_typing", "join_room", "leave_room", "user_stop_typing", "user_online"]
        assert client.queue_size == 0
        await client.disconnect()

    def test_queue_drops_oldest_when_full(self, table, fake_network):
        client = RealtimeClient(table, transport_factory=fake_network.factory, queue_capacity=3)
        for i in range(5):
            client.emit("join_room", {"roomId": f"r{i}"})

        pending = client.pending_events()
        assert client.queue_size == 3
        assert client.dropped_count == 2
        assert [e.payload["roomId"] for e in pending] == ["r2", "r3", "r4"]

    def test_capacity_must_be_positive(self, table):
        with pytest.raises(ValueError):
            RealtimeClient(table, queue_capacity=0)

    @pytest.mark.asyncio
    async def test_emit_while_connected_preserves_order(self, client, fake_network):
        await client.connect("user-1")
        for i in range(20):
            client.emit("join_room", {"roomId": i})
        await client.drain()

        rooms = [payload["roomId"] for name, payload in fake_network.current.sent if name == "join_room"]
        assert rooms == list(range(20))
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_chat_message_payload(self, client, fake_network):
        await client.connect("user-1")
        client.send_chat_message("hello", "user-1")
        await client.drain()

        name, payload = fake_network.current.sent[-1]
        assert name == "chat_message"
        assert payload["message"] == "hello"
        assert payload["userId"] == "user-1"
        assert "timestamp" in payload
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_clears_queue(self, client, fake_network):
        await client.connect("user-1")
        transport = fake_network.current
        await client.disconnect()
        client.emit("join_room", {"roomId": "r1"})

        await client.disconnect()

        assert transport.closed
        assert client.queue_size == 0
        assert not client.is_reconnecting
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_mid_send_leaves_queue_empty(self, client, fake_network):
        await client.connect("user-1")
        await client.drain()
        transport = fake_network.current
        transport.stall_sends = True
        client.emit("join_room", {"roomId": "r1"})
        await wait_for(lambda: transport.stalled)

        await client.disconnect()

        assert transport.closed
        assert client.queue_size == 0


class TestInbound:
    @pytest.mark.asyncio
    async def test_chat_message_dispatched_as_model(self, client, fake_network):
        received = []
        client.on("chat_message", received.append)
        await client.connect("user-1")

        fake_network.current.push("chat_message", {"userId": "u2", "message": "hi"})
        await wait_for(lambda: received)

        assert isinstance(received[0], ChatMessageEvent)
        assert received[0].message == "hi"
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_unknown_and_lifecycle_events_ignored(self, client, fake_network):
        connects = []
        typing = []
        client.on("connect", lambda: connects.append(True))
        client.on("user_typing", typing.append)
        await client.connect("user-1")

        transport = fake_network.current
        transport.push("something_else", {})
        transport.push("connect", {})
        transport.push("user_typing", {"userId": "u2"})
        await wait_for(lambda: typing)

        assert connects == [True]
        assert typing[0].user_id == "u2"
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_off_removes_callback(self, client, fake_network):
        received = []

        def on_online(payload):
            received.append(payload)

        client.on("user_online", on_online)
        client.off("user_online", on_online)
        await client.connect("user-1")
        fake_network.current.push("user_online", "u2")
        await asyncio.sleep(0.02)
        assert received == []
        await client.disconnect()


class TestReconnect:
    @pytest.mark.asyncio
    async def test_reconnects_to_next_endpoint_after_drop(self, client, fake_network):
        events = []
        reconnected = asyncio.Event()
        client.on("disconnect", lambda: events.append("disconnect"))

        def on_connect():
            events.append("connect")
            if len(events) > 1:
                reconnected.set()

        client.on("connect", on_connect)

        await client.connect("user-1")
        first = fake_network.current
        fake_network.refused.add("http://primary.test")
        first.drop()

        await asyncio.wait_for(reconnected.wait(), timeout=2.0)
        await client.drain()

        second = fake_network.current
        assert second is not first
        assert first.closed
        assert events == ["connect", "disconnect", "connect"]
        assert client.working_url == "http://fallback.test"
        assert client.reconnect_attempts == 0
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_failed_send_is_requeued_in_order(self, client, fake_network):
        connects = []
        client.on("connect", lambda: connects.append(True))
        await client.connect("user-1")
        await client.drain()

        first = fake_network.current
        first.fail_sends = True
        client.emit("join_room", {"roomId": "a"})
        client.emit("join_room", {"roomId": "b"})

        await wait_for(lambda: len(connects) == 2)
        await client.drain()

        second = fake_network.current
        assert second is not first
        assert second.sent == [
            ("join_room", {"roomId": "a"}),
            ("join_room", {"roomId": "b"}),
            ("user_online", {"userId": "user-1"}),
        ]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_send_in_flight_at_drop_is_requeued_first(self, client, fake_network):
        connects = []
        client.on("connect", lambda: connects.append(True))
        await client.connect("user-1")
        await client.drain()

        first = fake_network.current
        first.stall_sends = True
        client.emit("join_room", {"roomId": "a"})
        client.emit("join_room", {"roomId": "b"})
        await wait_for(lambda: first.stalled)
        first.drop()

        await wait_for(lambda: len(connects) == 2)
        await client.drain()

        second = fake_network.current
        assert second is not first
        assert second.sent == [
            ("join_room", {"roomId": "a"}),
            ("join_room", {"roomId": "b"}),
            ("user_online", {"userId": "user-1"}),
        ]
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_gives_up_after_budget_with_one_error(self, client, fake_network, fast_budget):
        errors = []
        gave_up = asyncio.Event()

        def on_error(error):
            errors.append(error)
            gave_up.set()

        client.on("error", on_error)
        await client.connect("user-1")
        await client.drain()
        fake_network.refuse_all = True
        fake_network.current.drop()

        await asyncio.wait_for(gave_up.wait(), timeout=2.0)
        await asyncio.sleep(0.05)

        expected_opens = 1 + fast_budget.max_reconnect_attempts * 2
        assert len(fake_network.opens) == expected_opens
        assert len(errors) == 1
        assert isinstance(errors[0], RealtimeConnectError)
        assert client.state == ConnectionState.DISCONNECTED
        assert client.reconnect_attempts == fast_budget.max_reconnect_attempts
        assert not client.is_reconnecting

    @pytest.mark.asyncio
    async def test_events_queue_while_reconnecting(self, client, fake_network):
        gave_up = asyncio.Event()
        client.on("error", lambda e: gave_up.set())
        await client.connect("user-1")
        await client.drain()
        fake_network.refuse_all = True
        fake_network.current.drop()

        await wait_for(lambda: not client.is_connected)
        client.send_typing("user-1")
        await asyncio.wait_for(gave_up.wait(), timeout=2.0)

        assert [e.event_name for e in client.pending_events()] == ["user_typing"]

        fake_network.refuse_all = False
        await client.connect("user-1")
        await client.drain()
        assert [name for name, _ in fake_network.current.sent] == ["user_typing", "user_online"]
        await client.disconnect()
