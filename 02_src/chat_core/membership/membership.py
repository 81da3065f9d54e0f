"""Group and broadcast membership reads."""

from typing import Protocol

from ..errors import NotFoundError, ValidationError
from ..models import BROADCAST_CAPACITY, GROUP_CAPACITY, Broadcast, Group
from ..storage import IStorage


class IMembershipService(Protocol):
    """Exposes current recipient sets of groups and broadcasts."""

    async def broadcast_recipients(self, broadcast_id: str) -> list[str]:
        """User ids of a broadcast list."""
        ...

    async def group_recipients(self, group_id: str) -> list[str]:
        """User ids of a group."""
        ...


class MembershipService:
    """Membership reads backed by storage; capacity checked on save."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def save_group(self, group: Group) -> None:
        if len(group.members) > GROUP_CAPACITY:
            raise ValidationError(f"A group cannot have more than {GROUP_CAPACITY} users.")
        await self._storage.save_group(group)

    async def save_broadcast(self, broadcast: Broadcast) -> None:
        if len(broadcast.members) > BROADCAST_CAPACITY:
            raise ValidationError(
                f"A broadcast cannot have more than {BROADCAST_CAPACITY} users."
            )
        await self._storage.save_broadcast(broadcast)

    async def broadcast_recipients(self, broadcast_id: str) -> list[str]:
        broadcast = await self._storage.get_broadcast(broadcast_id)
        if broadcast is None:
            raise NotFoundError(f"Broadcast {broadcast_id} not found")
        return list(broadcast.members)

    async def group_recipients(self, group_id: str) -> list[str]:
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Group {group_id} not found")
        return [member.user_id for member in group.members]
