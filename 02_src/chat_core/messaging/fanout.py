"""Fan-out engine: expands a send intent into persisted rows."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..errors import ChatError
from ..identity import IIdentityService
from ..logging_config import get_logger, log_context
from ..models import (
    UNKNOWN_NAME,
    ConversationType,
    FanoutResult,
    Message,
    Participant,
    SendRequest,
)
from ..storage import IStorage

logger = get_logger(__name__)


class IFanoutEngine(Protocol):
    """Expands outgoing messages into store rows."""

    async def send(self, request: SendRequest) -> FanoutResult:
        """Persist the rows for one logical message."""
        ...


class FanoutEngine:
    """Writes one row per receiver for broadcasts, one row otherwise.

    With ``atomic=False`` broadcast rows are written independently and a
    partial fan-out is reported rather than rolled back. ``atomic=True``
    writes every row of the send in a single transaction.
    """

    def __init__(self, storage: IStorage, identity: IIdentityService, atomic: bool = False):
        self._storage = storage
        self._identity = identity
        self._atomic = atomic

    async def send(self, request: SendRequest) -> FanoutResult:
        batch_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)

        if request.conversation_type is ConversationType.BROADCAST:
            receivers = await self._resolve_receivers(request.receiver_ids)
            rows = [self._build_row(request, batch_id, now, [receiver]) for receiver in receivers]
        else:
            rows = [self._build_row(request, batch_id, now, list(request.receivers))]

        context = log_context(
            batch_id=batch_id,
            conversation_type=request.conversation_type.value,
            sender_id=request.sender.user_id,
            rows=len(rows),
        )

        if self._atomic or len(rows) == 1:
            await self._storage.save_messages(rows)
            logger.info("Message sent", extra=context)
            return FanoutResult(messages=rows)

        return await self._write_independently(rows, context)

    async def _resolve_receivers(self, receiver_ids: list[str]) -> list[Participant]:
        users = await self._identity.find_by_ids(receiver_ids)
        names = {user.id: user.name for user in users}
        return [
            Participant(user_id=user_id, name=names.get(user_id, UNKNOWN_NAME))
            for user_id in receiver_ids
        ]

    @staticmethod
    def _build_row(
        request: SendRequest,
        batch_id: str,
        created_at: datetime,
        receivers: list[Participant],
    ) -> Message:
        return Message(
            id=str(uuid.uuid4()),
            batch_id=batch_id,
            conversation_type=request.conversation_type,
            reference_id=request.reference_id,
            sender=request.sender,
            receivers=receivers,
            body=request.body,
            delivery_state=request.delivery_state,
            is_forwarded=request.is_forwarded,
            reply_to=request.reply_to,
            created_at=created_at,
            updated_at=created_at,
        )

    async def _write_independently(self, rows: list[Message], context: dict) -> FanoutResult:
        persisted: list[Message] = []
        failed: list[str] = []
        last_error: ChatError | None = None

        for row in rows:
            try:
                await self._storage.save_message(row)
            except ChatError as exc:
                last_error = exc
                failed.append(row.receivers[0].user_id)
                logger.error("Broadcast row not persisted: %s", exc, extra=context)
            else:
                persisted.append(row)

        if not persisted and last_error is not None:
            raise last_error

        if failed:
            logger.warning(
                "Partial broadcast fan-out: %d of %d rows persisted",
                len(persisted),
                len(rows),
                extra=context,
            )
        else:
            logger.info("Message sent", extra=context)
        return FanoutResult(messages=persisted, failed_receivers=failed)
