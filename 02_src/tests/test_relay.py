"""Tests for the real-time relay and its session registry."""

import pytest
import pytest_asyncio

from chat_core.event_bus import EventBus
from chat_core.models import Broadcast
from chat_core.relay import DeletePolicy, RealtimeRelay


@pytest_asyncio.fixture
async def participants_relay(registry, membership):
    """Relay with the participants-only delete policy."""
    bus = EventBus()
    rl = RealtimeRelay(
        event_bus=bus,
        registry=registry,
        membership=membership,
        delete_policy=DeletePolicy.PARTICIPANTS,
    )
    await rl.start()
    await bus.start()
    yield rl, bus
    await bus.stop()
    await rl.stop()


@pytest.fixture
def connect_users(make_connection):
    """Connect one fake socket per user id; returns {user_id: connection}."""

    async def connect(relay, *user_ids):
        connections = {}
        for user_id in user_ids:
            connection = make_connection()
            await relay.connect(user_id, connection)
            connections[user_id] = connection
        return connections

    return connect


class TestSessionRegistry:
    """Tests for SessionRegistry."""

    async def test_add_and_remove(self, registry, make_connection):
        session = await registry.add("u1", make_connection())

        assert await registry.online_user_ids() == {"u1"}

        removed = await registry.remove(session.session_id)
        assert removed is session
        assert await registry.all_sessions() == []

    async def test_remove_unknown_session(self, registry):
        assert await registry.remove("nope") is None

    async def test_multiple_sessions_per_user(self, registry, make_connection):
        first = await registry.add("u1", make_connection())
        second = await registry.add("u1", make_connection())

        assert first.session_id != second.session_id
        assert len(await registry.sessions_for(["u1"])) == 2

    async def test_clear(self, registry, make_connection):
        await registry.add("u1", make_connection())
        await registry.add("u2", make_connection())

        assert await registry.clear() == 2
        assert await registry.online_user_ids() == set()


class TestMessageSent:
    """message-sent goes to everyone except the sender's sessions."""

    async def test_excludes_sender(self, relay, event_bus, connect_users):
        connections = await connect_users(relay, "u1", "u2", "u3")

        assert relay.notify_message_sent({"message": "hi"}, sender_id="u1") is True
        await event_bus.drain()

        assert connections["u1"].frames == []
        assert connections["u2"].frames == [{"event": "message-sent", "data": {"message": "hi"}}]
        assert connections["u3"].events() == ["message-sent"]

    async def test_excludes_every_sender_session(self, relay, event_bus, make_connection):
        phone, laptop = make_connection(), make_connection()
        await relay.connect("u1", phone)
        await relay.connect("u1", laptop)

        relay.notify_message_sent({}, sender_id="u1")
        await event_bus.drain()

        assert phone.frames == []
        assert laptop.frames == []

    async def test_failed_connection_is_dropped(
        self, relay, event_bus, registry, make_connection
    ):
        healthy = make_connection()
        broken = make_connection(fail=True)
        await relay.connect("u2", healthy)
        await relay.connect("u3", broken)

        relay.notify_message_sent({}, sender_id="u1")
        await event_bus.drain()

        assert healthy.events() == ["message-sent"]
        assert await registry.online_user_ids() == {"u2"}

    async def test_stalled_connection_is_dropped(self, event_bus, registry, make_connection):
        rl = RealtimeRelay(event_bus=event_bus, registry=registry, send_timeout=0.01)
        await rl.start()
        await event_bus.start()
        await rl.connect("u2", make_connection(delay=1.0))

        rl.notify_message_sent({}, sender_id="u1")
        await event_bus.drain()

        assert await registry.all_sessions() == []
        await event_bus.stop()

    async def test_not_running_returns_false(self, event_bus, registry):
        rl = RealtimeRelay(event_bus=event_bus, registry=registry)

        assert rl.notify_message_sent({}, sender_id="u1") is False


class TestMessageDeleted:
    """message-deleted targeting under each policy."""

    async def test_global_policy_reaches_everyone(self, relay, event_bus, connect_users):
        connections = await connect_users(relay, "u1", "u2", "u9")

        relay.notify_message_deleted("m1", sender_id="u1", receiver_id="u2")
        await event_bus.drain()

        for connection in connections.values():
            assert connection.frames == [
                {
                    "event": "message-deleted",
                    "data": {"messageId": "m1", "senderId": "u1", "receiverId": "u2"},
                }
            ]

    async def test_participants_policy_limits_audience(self, participants_relay, connect_users):
        rl, bus = participants_relay
        connections = await connect_users(rl, "u1", "u2", "u9")

        rl.notify_message_deleted("m1", sender_id="u1", receiver_id=["u2"])
        await bus.drain()

        assert connections["u1"].events() == ["message-deleted"]
        assert connections["u2"].events() == ["message-deleted"]
        assert connections["u9"].frames == []

    async def test_participants_policy_includes_broadcast_members(
        self, participants_relay, membership, connect_users
    ):
        rl, bus = participants_relay
        await membership.save_broadcast(Broadcast(id="b1", name="News", members=["u3", "u4"]))
        connections = await connect_users(rl, "u1", "u4", "u9")

        rl.notify_message_deleted("m1", sender_id="u1", receiver_id="u3", broadcast_id="b1")
        await bus.drain()

        assert connections["u4"].events() == ["message-deleted"]
        assert connections["u9"].frames == []

    async def test_participants_policy_survives_missing_broadcast(
        self, participants_relay, connect_users
    ):
        rl, bus = participants_relay
        connections = await connect_users(rl, "u1", "u2")

        rl.notify_message_deleted("m1", sender_id="u1", receiver_id="u2", broadcast_id="gone")
        await bus.drain()

        assert connections["u2"].events() == ["message-deleted"]


class TestClientEvents:
    """Tests for RealtimeRelay.handle_client_event()."""

    async def test_ping_answers_pong(self, relay, make_connection):
        connection = make_connection()
        session = await relay.connect("u1", connection)

        await relay.handle_client_event(session, {"event": "ping"})

        assert connection.frames == [{"event": "pong", "data": {}}]

    async def test_client_message_sent_is_relayed(self, relay, event_bus, make_connection):
        receiver = make_connection()
        sender = make_connection()
        session = await relay.connect("u1", sender)
        await relay.connect("u2", receiver)

        await relay.handle_client_event(
            session, {"event": "message-sent", "data": {"message": "yo"}}
        )
        await event_bus.drain()

        assert sender.frames == []
        assert receiver.frames[0]["data"] == {"message": "yo"}

    async def test_client_message_deleted_defaults_sender(
        self, relay, event_bus, make_connection
    ):
        receiver = make_connection()
        session = await relay.connect("u1", make_connection())
        await relay.connect("u2", receiver)

        await relay.handle_client_event(
            session, {"event": "message-deleted", "data": {"messageId": "m1"}}
        )
        await event_bus.drain()

        assert receiver.frames[0]["data"]["senderId"] == "u1"

    @pytest.mark.parametrize(
        "frame",
        [
            "not a dict",
            {"event": "typing"},
            {"event": "message-deleted", "data": {}},
            {"event": "message-deleted", "data": "oops"},
            {"event": "message-sent", "data": "oops"},
            {"event": "message-sent", "data": ["m1"]},
        ],
    )
    async def test_unknown_frames_ignored(self, relay, event_bus, make_connection, frame):
        receiver = make_connection()
        session = await relay.connect("u1", make_connection())
        await relay.connect("u2", receiver)

        await relay.handle_client_event(session, frame)
        await event_bus.drain()

        assert receiver.frames == []
