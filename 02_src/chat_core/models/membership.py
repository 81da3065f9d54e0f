"""Identity and membership models consumed by the core."""

from dataclasses import dataclass, field
from enum import Enum

GROUP_CAPACITY = 151
BROADCAST_CAPACITY = 101


@dataclass
class User:
    """Identity reference; the core never owns the user lifecycle."""

    id: str
    name: str
    email: str | None = None


class MemberRole(str, Enum):
    """Role of a user inside a group."""

    ADMIN = "admin"
    USER = "user"


@dataclass
class GroupMember:
    """A user inside a group."""

    user_id: str
    role: MemberRole = MemberRole.USER


@dataclass
class Group:
    """Ordered group membership (at most GROUP_CAPACITY members)."""

    id: str
    name: str
    members: list[GroupMember] = field(default_factory=list)


@dataclass
class Broadcast:
    """Ordered broadcast list (at most BROADCAST_CAPACITY members)."""

    id: str
    name: str
    members: list[str] = field(default_factory=list)  # user ids
