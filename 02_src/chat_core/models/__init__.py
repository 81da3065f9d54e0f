"""Core data models for the chat core."""

from .events import RelayEvent, Session, Topic
from .membership import (
    BROADCAST_CAPACITY,
    GROUP_CAPACITY,
    Broadcast,
    Group,
    GroupMember,
    MemberRole,
    User,
)
from .messages import (
    DOCUMENT_KEYS,
    PENDING_STATES,
    UNKNOWN_NAME,
    BulkUpdateResult,
    ConversationType,
    DeliveryState,
    FanoutResult,
    FileAttachment,
    LifecycleStatus,
    LogicalMessage,
    Message,
    MessageBody,
    Participant,
    UnreadSummary,
)
from .requests import SendRequest, parse_enum

__all__ = [
    # Messages
    "ConversationType",
    "DeliveryState",
    "LifecycleStatus",
    "PENDING_STATES",
    "DOCUMENT_KEYS",
    "UNKNOWN_NAME",
    "Participant",
    "FileAttachment",
    "MessageBody",
    "Message",
    "LogicalMessage",
    "FanoutResult",
    "BulkUpdateResult",
    "UnreadSummary",
    # Requests
    "SendRequest",
    "parse_enum",
    # Identity / membership
    "User",
    "MemberRole",
    "GroupMember",
    "Group",
    "Broadcast",
    "GROUP_CAPACITY",
    "BROADCAST_CAPACITY",
    # Relay
    "Topic",
    "RelayEvent",
    "Session",
]
