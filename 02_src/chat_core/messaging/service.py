"""Chat service: the operations exposed to the HTTP layer."""

from typing import Any

from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger, log_context
from ..models import (
    BulkUpdateResult,
    ConversationType,
    DeliveryState,
    FanoutResult,
    LifecycleStatus,
    LogicalMessage,
    Message,
    SendRequest,
    UnreadSummary,
    parse_enum,
)
from ..relay import RealtimeRelay
from ..storage import IStorage
from .delivery import DeliveryStateUpdater
from .fanout import IFanoutEngine
from .history import DEFAULT_PAGE_SIZE, HistoryAggregator, collapse_rows
from .wire import logical_to_wire

logger = get_logger(__name__)


def _optional_type(value: str | None) -> ConversationType | None:
    if not value:
        return None
    return parse_enum(ConversationType, value, "type")


class ChatService:
    """Coordinates the store-backed components with the relay.

    Relay notifications are queued after the durable write succeeds and are
    never awaited; a relay failure cannot fail the operation.
    """

    def __init__(
        self,
        storage: IStorage,
        fanout: IFanoutEngine,
        history: HistoryAggregator,
        delivery: DeliveryStateUpdater,
        relay: RealtimeRelay,
    ):
        self._storage = storage
        self._fanout = fanout
        self._history = history
        self._delivery = delivery
        self._relay = relay

    async def send_message(self, payload: Any) -> FanoutResult:
        request = SendRequest.from_wire(payload)
        result = await self._fanout.send(request)

        for logical in collapse_rows(result.messages):
            self._notify_sent(logical, request.sender.user_id)
        return result

    async def update_content(self, message_id: str, content: str | None) -> Message:
        if not content:
            raise ValidationError("Message content is required.")

        message = await self._storage.update_message_content(message_id, content)
        if message is None:
            raise NotFoundError("Message not found.")
        return message

    async def fetch_history(
        self,
        user_id1: str,
        user_id2: str,
        conversation_type: str | None = None,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[LogicalMessage]:
        return await self._history.fetch(
            user_id1,
            user_id2,
            conversation_type=_optional_type(conversation_type),
            skip=skip,
            limit=limit,
        )

    async def bulk_update_delivery(
        self,
        sender_id: str,
        receiver_ids: list[str],
        deliver_type: str,
        conversation_type: str | None = None,
    ) -> BulkUpdateResult:
        return await self._delivery.bulk_transition(
            sender_id,
            receiver_ids,
            parse_enum(DeliveryState, deliver_type, "deliverType"),
            _optional_type(conversation_type),
        )

    async def set_delivery_state(self, message_id: str, deliver_type: str) -> None:
        if not message_id or not deliver_type:
            raise ValidationError("Missing required fields.")
        await self._delivery.set_state(
            message_id, parse_enum(DeliveryState, deliver_type, "deliverType")
        )

    async def unread_summary(self, user_id: str) -> UnreadSummary:
        return await self._delivery.unread_summary(user_id)

    async def delete_message(
        self, message_id: str, sender_id: str | None, receiver_id: Any
    ) -> Message:
        """Soft-delete a row and announce it. Replies keep their reference."""
        existing = await self._storage.get_message(message_id)
        if existing is None:
            raise NotFoundError("Chat not found")

        message = await self._storage.set_lifecycle_status(message_id, LifecycleStatus.DELETED)
        if message is None:
            raise NotFoundError("Chat not found")

        logger.info(
            "Message deleted",
            extra=log_context(message_id=message_id, sender_id=sender_id),
        )
        self._notify_deleted(message, sender_id, receiver_id)
        return message

    def _notify_sent(self, logical: LogicalMessage, sender_id: str) -> None:
        try:
            self._relay.notify_message_sent(logical_to_wire(logical), sender_id=sender_id)
        except Exception:
            logger.exception(
                "Relay notification failed", extra=log_context(batch_id=logical.batch_id)
            )

    def _notify_deleted(self, message: Message, sender_id: str | None, receiver_id: Any) -> None:
        broadcast_id = (
            message.reference_id
            if message.conversation_type is ConversationType.BROADCAST
            else None
        )
        try:
            self._relay.notify_message_deleted(
                message_id=message.id,
                sender_id=sender_id or message.sender.user_id,
                receiver_id=receiver_id,
                participants=[message.sender.user_id, *(r.user_id for r in message.receivers)],
                broadcast_id=broadcast_id,
            )
        except Exception:
            logger.exception(
                "Relay notification failed", extra=log_context(message_id=message.id)
            )
