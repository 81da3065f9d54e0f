"""Delivery-state transitions and the unread summary."""

from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger, log_context
from ..models import BulkUpdateResult, ConversationType, DeliveryState, UnreadSummary
from ..storage import IStorage

logger = get_logger(__name__)

UNREAD_PREVIEW_LIMIT = 50


class DeliveryStateUpdater:
    """Moves rows between sent, unread and delivered."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def bulk_transition(
        self,
        sender_id: str,
        receiver_ids: list[str],
        new_state: DeliveryState,
        conversation_type: ConversationType | None = None,
    ) -> BulkUpdateResult:
        """Move every pending row of a conversation to new_state.

        Only rows currently in sent or unread are touched. Raises
        NotFoundError when nothing matches.
        """
        if not sender_id or not receiver_ids:
            raise ValidationError("senderId and receiverId are required")

        matched, modified = await self._storage.bulk_update_delivery_state(
            sender_id, receiver_ids, conversation_type, new_state
        )
        if matched == 0:
            raise NotFoundError("No messages matched the query.")

        logger.info(
            "Delivery state updated to %s",
            new_state.value,
            extra=log_context(sender_id=sender_id, matched=matched, modified=modified),
        )
        return BulkUpdateResult(matched=matched, modified=modified)

    async def set_state(self, message_id: str, new_state: DeliveryState) -> None:
        """Set one row's state. Repeating the same state is a no-op success."""
        if not message_id:
            raise ValidationError("messageId is required")
        if not await self._storage.set_delivery_state(message_id, new_state):
            raise NotFoundError(f"Message {message_id} not found")

    async def unread_summary(self, user_id: str) -> UnreadSummary:
        """Count of pending rows addressed to the user plus the newest of them."""
        count = await self._storage.count_pending_for_receiver(user_id)
        messages = await self._storage.list_pending_for_receiver(user_id, UNREAD_PREVIEW_LIMIT)
        return UnreadSummary(count=count, messages=messages)
