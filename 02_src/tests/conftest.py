"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeConnection:
    """Stand-in for a WebSocket: records frames, optionally fails or stalls."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.frames: list[dict] = []
        self.fail = fail
        self.delay = delay

    async def send_json(self, frame: dict) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("connection lost")
        self.frames.append(frame)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.frames]


def wire_message(**overrides) -> dict:
    """A valid ``newMessage`` payload; keyword arguments replace fields."""
    payload = {
        "type": "direct",
        "sender": {"userId": "u1", "name": "Alice"},
        "message": "hi",
        "receiver": [{"userId": "u2", "name": "Bob"}],
        "messageType": "text",
        "deliverType": "sent",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload():
    """Factory for send payloads."""
    return wire_message


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from chat_core.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def identity(storage):
    """Identity service with four known users."""
    from chat_core.identity import IdentityService
    from chat_core.models import User

    service = IdentityService(storage)
    for user_id, name in [("u1", "Alice"), ("u2", "Bob"), ("u3", "Carol"), ("u4", "Dave")]:
        await service.register(User(id=user_id, name=name, email=f"{user_id}@example.com"))
    return service


@pytest.fixture
def membership(storage):
    """Create MembershipService with storage."""
    from chat_core.membership import MembershipService

    return MembershipService(storage)


@pytest.fixture
def event_bus():
    """Create EventBus (not started)."""
    from chat_core.event_bus import EventBus

    # Don't start automatically - let tests control it
    return EventBus()


@pytest.fixture
def registry():
    """Create an empty SessionRegistry."""
    from chat_core.relay import SessionRegistry

    return SessionRegistry()


@pytest_asyncio.fixture
async def relay(event_bus, registry, membership):
    """Relay with a running event bus and the global delete policy."""
    from chat_core.relay import RealtimeRelay

    rl = RealtimeRelay(event_bus=event_bus, registry=registry, membership=membership)
    await rl.start()
    await event_bus.start()
    yield rl
    await event_bus.stop()
    await rl.stop()


@pytest.fixture
def fanout(storage, identity):
    """Best-effort FanoutEngine."""
    from chat_core.messaging import FanoutEngine

    return FanoutEngine(storage, identity)


@pytest.fixture
def history(storage):
    """Create HistoryAggregator with storage."""
    from chat_core.messaging import HistoryAggregator

    return HistoryAggregator(storage)


@pytest.fixture
def delivery(storage):
    """Create DeliveryStateUpdater with storage."""
    from chat_core.messaging import DeliveryStateUpdater

    return DeliveryStateUpdater(storage)


@pytest.fixture
def chat(storage, fanout, history, delivery, relay):
    """ChatService wired to real components."""
    from chat_core.messaging import ChatService

    return ChatService(
        storage=storage,
        fanout=fanout,
        history=history,
        delivery=delivery,
        relay=relay,
    )


@pytest.fixture
def settings():
    """Settings for an in-memory application."""
    from chat_core.config import Settings

    return Settings(database_url=":memory:", jwt_secret="test-secret")


@pytest.fixture
def make_connection():
    """Factory for fake WebSocket connections."""
    return FakeConnection
