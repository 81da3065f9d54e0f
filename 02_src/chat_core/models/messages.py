"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

UNKNOWN_NAME = "Unknown"
# Wire keys for the up-to-three document attachments
DOCUMENT_KEYS = ("docname1", "docname2", "docname3")


class ConversationType(str, Enum):
    """Kind of conversation a message belongs to."""

    DIRECT = "direct"
    GROUP = "group"
    BROADCAST = "broadcast"


class DeliveryState(str, Enum):
    """Transit status of a message (``deliverType`` on the wire)."""

    SENT = "sent"
    UNREAD = "unread"
    DELIVERED = "delivered"


# States a bulk transition or unread count looks at
PENDING_STATES = (DeliveryState.SENT, DeliveryState.UNREAD)


class LifecycleStatus(str, Enum):
    """Soft-delete flag (``status`` on the wire)."""

    ACTIVE = "active"
    DELETED = "deleted"


@dataclass
class Participant:
    """Sender or receiver snapshot, denormalized at send time."""

    user_id: str
    name: str


@dataclass
class FileAttachment:
    """A file attached to a message."""

    filename: str
    size: str


@dataclass
class MessageBody:
    """Content and attachment metadata of a message."""

    message_type: str
    content: str
    image_name: str | None = None
    documents: list[str] = field(default_factory=list)  # up to 3 names
    doc_icon: str | None = None
    files: list[FileAttachment] = field(default_factory=list)


@dataclass
class Message:
    """A persisted message row.

    A broadcast to N recipients is stored as N rows sharing ``batch_id``,
    ``sender``, ``body`` and ``created_at`` with one receiver each.
    """

    id: str
    batch_id: str
    conversation_type: ConversationType
    sender: Participant
    receivers: list[Participant]
    body: MessageBody
    delivery_state: DeliveryState
    created_at: datetime
    updated_at: datetime
    reference_id: str | None = None
    lifecycle_status: LifecycleStatus = LifecycleStatus.ACTIVE
    is_forwarded: bool = False
    reply_to: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle_status is LifecycleStatus.DELETED


@dataclass
class LogicalMessage:
    """User-facing conversation turn, possibly backed by several rows."""

    ids: list[str]
    batch_id: str
    conversation_type: ConversationType
    sender: Participant
    receivers: list[Participant]
    body: MessageBody
    delivery_state: DeliveryState
    created_at: datetime
    updated_at: datetime
    reference_id: str | None = None
    is_forwarded: bool = False
    reply_to: str | None = None
    reply_to_available: bool = True

    @property
    def id(self) -> str:
        return self.ids[0]


@dataclass
class FanoutResult:
    """Rows persisted by one send; failed receivers only in best-effort mode."""

    messages: list[Message]
    failed_receivers: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_receivers)


@dataclass
class BulkUpdateResult:
    """Outcome of a bulk delivery-state transition."""

    matched: int
    modified: int


@dataclass
class UnreadSummary:
    """Pending-message count plus the newest pending rows."""

    count: int
    messages: list[Message]
