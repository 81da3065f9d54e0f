"""Relay event models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics, named after the socket events they produce."""

    MESSAGE_SENT = "message-sent"
    MESSAGE_DELETED = "message-deleted"


@dataclass
class RelayEvent:
    """An event queued for delivery to connected sessions."""

    id: str
    topic: Topic
    payload: dict  # socket frame data
    source: str  # component that published
    timestamp: datetime
    sender_id: str | None = None
    target_user_ids: list[str] | None = None  # None means every session
    broadcast_id: str | None = None  # members are added to the targets


@dataclass
class Session:
    """A live socket connection bound to a user."""

    session_id: str
    user_id: str
    connection: object  # anything with ``async send_json(dict)``
    connected_at: datetime | None = None
