"""Tests for IdentityService and MembershipService."""

import pytest

from chat_core.errors import NotFoundError, ValidationError
from chat_core.models import (
    BROADCAST_CAPACITY,
    GROUP_CAPACITY,
    Broadcast,
    Group,
    GroupMember,
    User,
)


class TestIdentityService:
    """Tests for IdentityService."""

    async def test_find_by_ids(self, identity):
        users = await identity.find_by_ids(["u2", "u3", "u2", "ghost"])

        assert sorted(u.id for u in users) == ["u2", "u3"]

    async def test_find_by_ids_empty(self, identity):
        assert await identity.find_by_ids([]) == []

    async def test_find_by_id(self, identity):
        assert (await identity.find_by_id("u1")).name == "Alice"
        assert await identity.find_by_id("ghost") is None

    async def test_observe_records_new_caller(self, identity):
        await identity.observe(User(id="u7", name="Gina", email="gina@example.com"))

        assert (await identity.find_by_id("u7")).name == "Gina"

    async def test_observe_writes_only_on_change(self, identity, storage, monkeypatch):
        writes = []
        save_user = storage.save_user

        async def counting_save(user):
            writes.append(user.name)
            await save_user(user)

        monkeypatch.setattr(storage, "save_user", counting_save)

        await identity.observe(User(id="u7", name="Gina"))
        await identity.observe(User(id="u7", name="Gina"))
        await identity.observe(User(id="u7", name="Gina R."))

        assert writes == ["Gina", "Gina R."]
        assert (await identity.find_by_id("u7")).name == "Gina R."

    async def test_observe_skips_nameless_caller(self, identity):
        await identity.observe(User(id="u7", name=""))

        assert await identity.find_by_id("u7") is None

    async def test_forget_allows_rewrite_after_clear(self, identity, storage):
        await identity.observe(User(id="u7", name="Gina"))
        await storage.clear()
        identity.forget()

        await identity.observe(User(id="u7", name="Gina"))

        assert (await identity.find_by_id("u7")).name == "Gina"


class TestMembershipService:
    """Tests for MembershipService."""

    async def test_broadcast_recipients(self, membership):
        await membership.save_broadcast(Broadcast(id="b1", name="News", members=["u3", "u2"]))

        assert await membership.broadcast_recipients("b1") == ["u3", "u2"]

    async def test_group_recipients(self, membership):
        await membership.save_group(
            Group(id="g1", name="Team", members=[GroupMember("u1"), GroupMember("u4")])
        )

        assert await membership.group_recipients("g1") == ["u1", "u4"]

    async def test_missing_conversations(self, membership):
        with pytest.raises(NotFoundError):
            await membership.broadcast_recipients("none")
        with pytest.raises(NotFoundError):
            await membership.group_recipients("none")

    async def test_broadcast_capacity(self, membership):
        members = [f"u{i}" for i in range(BROADCAST_CAPACITY + 1)]

        with pytest.raises(ValidationError):
            await membership.save_broadcast(Broadcast(id="b1", name="Big", members=members))

    async def test_group_capacity(self, membership):
        members = [GroupMember(f"u{i}") for i in range(GROUP_CAPACITY + 1)]

        with pytest.raises(ValidationError):
            await membership.save_group(Group(id="g1", name="Big", members=members))
