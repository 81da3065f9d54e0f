"""History aggregator: paged conversation history as logical messages."""

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import ConversationType, LifecycleStatus, LogicalMessage, Message
from ..storage import IStorage

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def collapse_rows(rows: list[Message]) -> list[LogicalMessage]:
    """Group rows by send batch, keeping first-seen order.

    Scalar fields come from the first row of each batch; ids and receivers
    are collected from every row.
    """
    grouped: dict[str, LogicalMessage] = {}
    for row in rows:
        logical = grouped.get(row.batch_id)
        if logical is None:
            grouped[row.batch_id] = LogicalMessage(
                ids=[row.id],
                batch_id=row.batch_id,
                conversation_type=row.conversation_type,
                reference_id=row.reference_id,
                sender=row.sender,
                receivers=list(row.receivers),
                body=row.body,
                delivery_state=row.delivery_state,
                is_forwarded=row.is_forwarded,
                reply_to=row.reply_to,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )
        else:
            logical.ids.append(row.id)
            logical.receivers.extend(row.receivers)
    return list(grouped.values())


class HistoryAggregator:
    """Reads conversation history newest-first, one page of logical messages."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def fetch(
        self,
        user_id1: str,
        user_id2: str,
        conversation_type: ConversationType | None = None,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[LogicalMessage]:
        if skip < 0:
            raise ValidationError("skip must be >= 0", details={"skip": skip})
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", details={"limit": limit}
            )

        rows = await self._storage.find_history(
            conversation_type, user_id1, user_id2, skip=skip, limit=limit
        )
        messages = collapse_rows(rows)
        await self._resolve_replies(messages)
        return messages

    async def _resolve_replies(self, messages: list[LogicalMessage]) -> None:
        reply_ids = list({m.reply_to for m in messages if m.reply_to})
        if not reply_ids:
            return

        referents = await self._storage.get_messages(reply_ids)
        available = {
            m.id for m in referents if m.lifecycle_status is LifecycleStatus.ACTIVE
        }
        for message in messages:
            if message.reply_to:
                message.reply_to_available = message.reply_to in available
