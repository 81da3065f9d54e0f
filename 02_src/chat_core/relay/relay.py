"""Real-time relay: pushes message events to connected sessions.

The relay is a best-effort hint layered over the message store. Delivery is
at-most-once with no acknowledgement or redelivery; a client that misses an
event catches up through history.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import ChatError
from ..event_bus import IEventBus
from ..logging_config import get_logger, log_context
from ..membership import IMembershipService
from ..models import RelayEvent, Session, Topic
from .sessions import SessionRegistry

logger = get_logger(__name__)


class DeletePolicy(str, Enum):
    """Who hears about a deleted message."""

    GLOBAL = "global"  # every connected session
    PARTICIPANTS = "participants"  # sender, receivers, broadcast members


class RealtimeRelay:
    """Turns EventBus events into socket frames."""

    def __init__(
        self,
        event_bus: IEventBus,
        registry: SessionRegistry,
        membership: IMembershipService | None = None,
        delete_policy: DeletePolicy = DeletePolicy.GLOBAL,
        send_timeout: float = 2.0,
    ):
        self._event_bus = event_bus
        self._registry = registry
        self._membership = membership
        self._delete_policy = DeletePolicy(delete_policy)
        self._send_timeout = send_timeout

    @property
    def delete_policy(self) -> DeletePolicy:
        return self._delete_policy

    async def start(self) -> None:
        """Subscribe to relay topics."""
        self._event_bus.subscribe(Topic.MESSAGE_SENT, self._handle_message_sent)
        self._event_bus.subscribe(Topic.MESSAGE_DELETED, self._handle_message_deleted)

    async def stop(self) -> None:
        """Forget every session."""
        dropped = await self._registry.clear()
        logger.info("Relay stopped, %d sessions released", dropped)

    # Sessions
    async def connect(self, user_id: str, connection: object) -> Session:
        return await self._registry.add(user_id, connection)

    async def disconnect(self, session_id: str) -> None:
        await self._registry.remove(session_id)

    # Publishing (never blocks on socket I/O)
    def notify_message_sent(self, payload: dict, sender_id: str) -> bool:
        """Queue a message-sent event for every session except the sender's."""
        return self._event_bus.publish(
            RelayEvent(
                id=str(uuid.uuid4()),
                topic=Topic.MESSAGE_SENT,
                payload=payload,
                source="relay",
                timestamp=datetime.now(timezone.utc),
                sender_id=sender_id,
            )
        )

    def notify_message_deleted(
        self,
        message_id: str,
        sender_id: str | None,
        receiver_id: Any,
        participants: list[str] | None = None,
        broadcast_id: str | None = None,
    ) -> bool:
        """Queue a message-deleted event, targeted according to the delete policy."""
        targets = None
        if self._delete_policy is DeletePolicy.PARTICIPANTS:
            candidates = [sender_id, *_as_list(receiver_id), *(participants or [])]
            targets = list(dict.fromkeys(uid for uid in candidates if uid))

        return self._event_bus.publish(
            RelayEvent(
                id=str(uuid.uuid4()),
                topic=Topic.MESSAGE_DELETED,
                payload={
                    "messageId": message_id,
                    "senderId": sender_id,
                    "receiverId": receiver_id,
                },
                source="relay",
                timestamp=datetime.now(timezone.utc),
                sender_id=sender_id,
                target_user_ids=targets,
                broadcast_id=broadcast_id if targets is not None else None,
            )
        )

    async def handle_client_event(self, session: Session, frame: Any) -> None:
        """Relay an event emitted by a connected client."""
        if not isinstance(frame, dict):
            logger.warning("Ignoring malformed frame", extra=log_context(session_id=session.session_id))
            return

        event = frame.get("event")
        data = frame.get("data") or {}
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %r frame with non-object data",
                event,
                extra=log_context(session_id=session.session_id),
            )
            return

        if event == "ping":
            await self._send(session, {"event": "pong", "data": {}})
        elif event == Topic.MESSAGE_SENT.value:
            self.notify_message_sent(data, sender_id=session.user_id)
        elif event == Topic.MESSAGE_DELETED.value and data.get("messageId"):
            self.notify_message_deleted(
                message_id=str(data["messageId"]),
                sender_id=data.get("senderId") or session.user_id,
                receiver_id=data.get("receiverId"),
            )
        else:
            logger.warning(
                "Ignoring unknown client event %r",
                event,
                extra=log_context(session_id=session.session_id),
            )

    # Delivery (runs in the EventBus dispatcher)
    async def _handle_message_sent(self, event: RelayEvent) -> None:
        sessions = [
            s for s in await self._registry.all_sessions() if s.user_id != event.sender_id
        ]
        await self._deliver(sessions, event)

    async def _handle_message_deleted(self, event: RelayEvent) -> None:
        if event.target_user_ids is None:
            sessions = await self._registry.all_sessions()
        else:
            targets = list(event.target_user_ids)
            if event.broadcast_id and self._membership is not None:
                try:
                    targets.extend(await self._membership.broadcast_recipients(event.broadcast_id))
                except ChatError as exc:
                    logger.warning(
                        "Broadcast members unavailable: %s",
                        exc,
                        extra=log_context(broadcast_id=event.broadcast_id),
                    )
            sessions = await self._registry.sessions_for(targets)
        await self._deliver(sessions, event)

    async def _deliver(self, sessions: list[Session], event: RelayEvent) -> int:
        if not sessions:
            return 0

        frame = {"event": event.topic.value, "data": event.payload}
        results = await asyncio.gather(
            *[self._send(session, frame) for session in sessions],
            return_exceptions=True,
        )

        delivered = 0
        for session, result in zip(sessions, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Dropping session after failed send: %r",
                    result,
                    extra=log_context(
                        session_id=session.session_id,
                        user_id=session.user_id,
                        event_id=event.id,
                    ),
                )
                await self._registry.remove(session.session_id)
            else:
                delivered += 1
        return delivered

    async def _send(self, session: Session, frame: dict) -> None:
        await asyncio.wait_for(session.connection.send_json(frame), timeout=self._send_timeout)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
