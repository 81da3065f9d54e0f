"""Tests for Storage."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from chat_core.errors import TransientError
from chat_core.models import (
    Broadcast,
    ConversationType,
    DeliveryState,
    FileAttachment,
    Group,
    GroupMember,
    LifecycleStatus,
    MemberRole,
    Message,
    MessageBody,
    Participant,
    User,
)
from chat_core.storage import Storage


def make_message(
    message_id: str,
    sender: str = "u1",
    receivers: tuple[str, ...] = ("u2",),
    conversation_type: ConversationType = ConversationType.DIRECT,
    batch_id: str | None = None,
    created_at: datetime | None = None,
    state: DeliveryState = DeliveryState.SENT,
) -> Message:
    ts = created_at or datetime.now(timezone.utc)
    return Message(
        id=message_id,
        batch_id=batch_id or f"batch-{message_id}",
        conversation_type=conversation_type,
        sender=Participant(sender, sender.upper()),
        receivers=[Participant(r, r.upper()) for r in receivers],
        body=MessageBody(
            message_type="text",
            content=f"content {message_id}",
            documents=["a.pdf"],
            files=[FileAttachment(filename="a.pdf", size="1KB")],
        ),
        delivery_state=state,
        created_at=ts,
        updated_at=ts,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            for table in ("messages", "message_receivers", "users", "groups", "broadcasts"):
                assert table in tables

    async def test_call_before_init_fails(self):
        st = Storage(":memory:")
        with pytest.raises(RuntimeError):
            await st.get_message("m1")


class TestStorageMessages:
    """Tests for Message storage."""

    async def test_save_and_get_message(self, storage):
        await storage.save_message(make_message("m1", receivers=("u2", "u3")))

        msg = await storage.get_message("m1")
        assert msg is not None
        assert msg.sender == Participant("u1", "U1")
        assert [r.user_id for r in msg.receivers] == ["u2", "u3"]
        assert msg.body.documents == ["a.pdf"]
        assert msg.body.files == [FileAttachment(filename="a.pdf", size="1KB")]
        assert msg.created_at.tzinfo is not None

    async def test_get_nonexistent_message(self, storage):
        assert await storage.get_message("missing") is None

    async def test_save_messages_is_atomic(self, storage):
        ok = make_message("m1")
        duplicate = make_message("m1")

        with pytest.raises(Exception):
            await storage.save_messages([make_message("m0"), ok, duplicate])

        assert await storage.get_message("m0") is None
        assert await storage.get_message("m1") is None

    async def test_update_content(self, storage):
        await storage.save_message(make_message("m1"))

        updated = await storage.update_message_content("m1", "edited")
        assert updated.body.content == "edited"
        assert updated.updated_at >= updated.created_at

    async def test_update_content_missing(self, storage):
        assert await storage.update_message_content("missing", "x") is None

    async def test_soft_deleted_row_still_readable_by_id(self, storage):
        await storage.save_message(make_message("m1"))

        await storage.set_lifecycle_status("m1", LifecycleStatus.DELETED)

        msg = await storage.get_message("m1")
        assert msg.lifecycle_status is LifecycleStatus.DELETED


class TestStorageHistory:
    """Tests for Storage.find_history()."""

    async def test_direct_history_both_directions(self, storage):
        base = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        await storage.save_message(make_message("m1", "u1", ("u2",), created_at=base))
        await storage.save_message(
            make_message("m2", "u2", ("u1",), created_at=base + timedelta(seconds=1))
        )
        await storage.save_message(make_message("m3", "u1", ("u3",), created_at=base))

        rows = await storage.find_history(None, "u1", "u2", skip=0, limit=10)
        assert [r.id for r in rows] == ["m2", "m1"]

    async def test_pages_count_batches(self, storage):
        base = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        for index, batch in enumerate(["b1", "b2", "b3"]):
            ts = base + timedelta(minutes=index)
            for receiver in ("u2", "u3"):
                await storage.save_message(
                    make_message(
                        f"{batch}-{receiver}",
                        receivers=(receiver,),
                        conversation_type=ConversationType.BROADCAST,
                        batch_id=batch,
                        created_at=ts,
                    )
                )

        rows = await storage.find_history(
            ConversationType.BROADCAST, "u1", "", skip=1, limit=1
        )
        assert [r.id for r in rows] == ["b2-u2", "b2-u3"]

    async def test_deleted_rows_excluded(self, storage):
        await storage.save_message(make_message("m1"))
        await storage.set_lifecycle_status("m1", LifecycleStatus.DELETED)

        assert await storage.find_history(None, "u1", "u2", skip=0, limit=10) == []


class TestStorageDeliveryState:
    """Tests for delivery-state queries."""

    async def test_bulk_update_counts(self, storage):
        await storage.save_message(make_message("m1", state=DeliveryState.SENT))
        await storage.save_message(make_message("m2", state=DeliveryState.UNREAD))
        await storage.save_message(make_message("m3", state=DeliveryState.DELIVERED))

        matched, modified = await storage.bulk_update_delivery_state(
            "u1", ["u2"], None, DeliveryState.UNREAD
        )
        assert (matched, modified) == (2, 1)

    async def test_set_delivery_state_missing(self, storage):
        assert await storage.set_delivery_state("missing", DeliveryState.DELIVERED) is False

    async def test_pending_for_receiver(self, storage):
        await storage.save_message(make_message("m1", receivers=("u2", "u3")))
        await storage.save_message(make_message("m2", state=DeliveryState.DELIVERED))

        assert await storage.count_pending_for_receiver("u3") == 1
        assert await storage.count_pending_for_receiver("u2") == 1
        rows = await storage.list_pending_for_receiver("u2", limit=5)
        assert [r.id for r in rows] == ["m1"]


class TestStorageTimeouts:
    """Tests for store call bounding."""

    async def test_timeout_becomes_transient_error(self, storage, monkeypatch):
        async def slow_load(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        storage._timeout = 0.01
        monkeypatch.setattr(storage, "_load_messages", slow_load)

        with pytest.raises(TransientError):
            await storage.get_message("m1")

    async def test_timed_out_update_is_rolled_back(self, storage, monkeypatch):
        await storage.save_message(make_message("m1"))

        async def slow_commit():
            await asyncio.sleep(1)

        storage._timeout = 0.05
        monkeypatch.setattr(storage._conn, "commit", slow_commit)
        with pytest.raises(TransientError):
            await storage.set_delivery_state("m1", DeliveryState.DELIVERED)
        monkeypatch.undo()

        await storage.save_message(make_message("m2", receivers=("u3",)))

        assert (await storage.get_message("m1")).delivery_state is DeliveryState.SENT

    async def test_timed_out_bulk_update_is_rolled_back(self, storage, monkeypatch):
        await storage.save_message(make_message("m1"))
        await storage.save_message(make_message("m2"))

        async def slow_commit():
            await asyncio.sleep(1)

        storage._timeout = 0.05
        monkeypatch.setattr(storage._conn, "commit", slow_commit)
        with pytest.raises(TransientError):
            await storage.bulk_update_delivery_state(
                "u1", ["u2"], ConversationType.DIRECT, DeliveryState.DELIVERED
            )
        monkeypatch.undo()

        await storage.save_message(make_message("m3", receivers=("u3",)))

        assert await storage.count_pending_for_receiver("u2") == 2


class TestStorageUsersAndMemberships:
    """Tests for User, Group and Broadcast storage."""

    async def test_get_users_batch(self, storage):
        await storage.save_user(User(id="u1", name="Alice"))
        await storage.save_user(User(id="u2", name="Bob"))

        users = await storage.get_users(["u1", "u2", "u9"])
        assert sorted(u.name for u in users) == ["Alice", "Bob"]

    async def test_group_round_trip_keeps_order(self, storage):
        group = Group(
            id="g1",
            name="Team",
            members=[GroupMember("u2", MemberRole.ADMIN), GroupMember("u1")],
        )
        await storage.save_group(group)

        loaded = await storage.get_group("g1")
        assert [m.user_id for m in loaded.members] == ["u2", "u1"]
        assert loaded.members[0].role is MemberRole.ADMIN

    async def test_broadcast_save_replaces_members(self, storage):
        await storage.save_broadcast(Broadcast(id="b1", name="News", members=["u2", "u3"]))
        await storage.save_broadcast(Broadcast(id="b1", name="News", members=["u4"]))

        loaded = await storage.get_broadcast("b1")
        assert loaded.members == ["u4"]

    async def test_clear(self, storage):
        await storage.save_message(make_message("m1"))
        await storage.save_user(User(id="u1", name="Alice"))

        await storage.clear()

        assert await storage.get_message("m1") is None
        assert await storage.get_users(["u1"]) == []
