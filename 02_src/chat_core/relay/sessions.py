"""Process-wide table of live relay sessions."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Iterable

from ..logging_config import get_logger, log_context
from ..models import Session

logger = get_logger(__name__)


class SessionRegistry:
    """Maps session ids to user-bound connections behind one lock.

    Entries are added on connect and removed on disconnect (or when a send
    to the connection fails); ``clear`` tears the table down at shutdown.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}

    async def add(self, user_id: str, connection: object) -> Session:
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            connection=connection,
            connected_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            self._sessions[session.session_id] = session
            total = len(self._sessions)
        logger.info(
            "Session connected (%d active)",
            total,
            extra=log_context(session_id=session.session_id, user_id=user_id),
        )
        return session

    async def remove(self, session_id: str) -> Session | None:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session:
            logger.info(
                "Session disconnected",
                extra=log_context(session_id=session_id, user_id=session.user_id),
            )
        return session

    async def all_sessions(self) -> list[Session]:
        async with self._lock:
            return list(self._sessions.values())

    async def sessions_for(self, user_ids: Iterable[str]) -> list[Session]:
        wanted = set(user_ids)
        async with self._lock:
            return [s for s in self._sessions.values() if s.user_id in wanted]

    async def online_user_ids(self) -> set[str]:
        async with self._lock:
            return {s.user_id for s in self._sessions.values()}

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        return count
