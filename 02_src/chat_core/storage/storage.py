"""SQLite message store."""

import asyncio
import functools
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import TransientError
from ..logging_config import get_logger
from ..models import (
    PENDING_STATES,
    Broadcast,
    ConversationType,
    DeliveryState,
    FileAttachment,
    Group,
    GroupMember,
    LifecycleStatus,
    MemberRole,
    Message,
    MessageBody,
    Participant,
    User,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

_MESSAGE_COLUMNS = """
    m.id, m.batch_id, m.conversation_type, m.reference_id, m.sender_id,
    m.sender_name, m.message_type, m.content, m.image_name, m.documents,
    m.doc_icon, m.files, m.delivery_state, m.lifecycle_status,
    m.is_forwarded, m.reply_to, m.created_at, m.updated_at
"""

_RECEIVER_EXISTS = (
    "EXISTS (SELECT 1 FROM message_receivers r "
    "WHERE r.message_id = m.id AND r.user_id {op})"
)

_ACTIVE = f"m.lifecycle_status = '{LifecycleStatus.ACTIVE.value}'"
_PENDING = "m.delivery_state IN ({})".format(
    ", ".join(f"'{state.value}'" for state in PENDING_STATES)
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _placeholders(values: Iterable) -> str:
    return ", ".join("?" for _ in values)


def _receiver_is(user_id: str) -> tuple[str, list]:
    return _RECEIVER_EXISTS.format(op="= ?"), [user_id]


def _receiver_in(user_ids: list[str]) -> tuple[str, list]:
    return _RECEIVER_EXISTS.format(op=f"IN ({_placeholders(user_ids)})"), list(user_ids)


def history_filter(
    conversation_type: ConversationType | None, user_id1: str, user_id2: str
) -> tuple[str, list]:
    """WHERE clause selecting the rows of one conversation view."""
    if conversation_type is ConversationType.BROADCAST:
        exists, params = _receiver_is(user_id1)
        clause = f"m.conversation_type = ? AND (m.sender_id = ? OR {exists})"
        params = [ConversationType.BROADCAST.value, user_id1, *params]
    elif conversation_type is ConversationType.GROUP:
        exists, params = _receiver_is(user_id2)
        clause = f"m.conversation_type = ? AND {exists}"
        params = [ConversationType.GROUP.value, *params]
    else:
        exists_2, params_2 = _receiver_is(user_id2)
        exists_1, params_1 = _receiver_is(user_id1)
        # Any conversation type; fan-out rows between the pair belong to the thread
        clause = f"((m.sender_id = ? AND {exists_2}) OR (m.sender_id = ? AND {exists_1}))"
        params = [user_id1, *params_2, user_id2, *params_1]

    return f"{_ACTIVE} AND {clause}", params


def store_call(func):
    """Bound a store coroutine by the storage timeout.

    Expiry and driver-level operational failures surface as TransientError.
    """

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        try:
            return await asyncio.wait_for(func(self, *args, **kwargs), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Store call %s timed out after %ss", func.__name__, self._timeout)
            raise TransientError(
                f"{func.__name__} timed out after {self._timeout}s"
            ) from exc
        except aiosqlite.OperationalError as exc:
            logger.warning("Store call %s failed: %s", func.__name__, exc)
            raise TransientError(f"{func.__name__} failed: {exc}") from exc

    return wrapper


class IStorage(Protocol):
    """Persistent storage for messages and the identity/membership they reference."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Messages
    async def save_message(self, message: Message) -> None:
        """Persist one row in its own transaction."""
        ...

    async def save_messages(self, messages: list[Message]) -> None:
        """Persist several rows in one transaction (all or nothing)."""
        ...

    async def get_message(self, message_id: str) -> Message | None:
        """Get a row by id, including soft-deleted rows."""
        ...

    async def get_messages(self, message_ids: list[str]) -> list[Message]:
        """Get rows by id, including soft-deleted rows."""
        ...

    async def update_message_content(self, message_id: str, content: str) -> Message | None:
        """Replace body content; None if the row does not exist."""
        ...

    async def set_lifecycle_status(
        self, message_id: str, status: LifecycleStatus
    ) -> Message | None:
        """Set the soft-delete flag; None if the row does not exist."""
        ...

    async def find_history(
        self,
        conversation_type: ConversationType | None,
        user_id1: str,
        user_id2: str,
        skip: int,
        limit: int,
    ) -> list[Message]:
        """Rows of one page of send batches, newest batch first."""
        ...

    # Delivery state
    async def bulk_update_delivery_state(
        self,
        sender_id: str,
        receiver_ids: list[str],
        conversation_type: ConversationType | None,
        new_state: DeliveryState,
    ) -> tuple[int, int]:
        """Move pending rows to new_state. Returns (matched, modified)."""
        ...

    async def set_delivery_state(self, message_id: str, state: DeliveryState) -> bool:
        """Set one row's delivery state. False if the row does not exist."""
        ...

    async def count_pending_for_receiver(self, user_id: str) -> int:
        """Count non-deleted pending rows addressed to user_id."""
        ...

    async def list_pending_for_receiver(self, user_id: str, limit: int) -> list[Message]:
        """Newest non-deleted pending rows addressed to user_id."""
        ...

    # Users / memberships
    async def save_user(self, user: User) -> None:
        """Save a user."""
        ...

    async def get_users(self, user_ids: list[str]) -> list[User]:
        """Get users by id in one query."""
        ...

    async def save_group(self, group: Group) -> None:
        """Save a group with its members."""
        ...

    async def get_group(self, group_id: str) -> Group | None:
        """Get a group with its members."""
        ...

    async def save_broadcast(self, broadcast: Broadcast) -> None:
        """Save a broadcast list with its members."""
        ...

    async def get_broadcast(self, broadcast_id: str) -> Broadcast | None:
        """Get a broadcast list with its members."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._timeout = timeout
        self._conn: aiosqlite.Connection | None = None
        # Serializes transactions on the shared connection
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()
        logger.info("Storage ready at %s", self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Messages
    async def _insert_message(self, message: Message) -> None:
        body = message.body
        await self._conn.execute(
            """
            INSERT INTO messages (
                id, batch_id, conversation_type, reference_id, sender_id,
                sender_name, message_type, content, image_name, documents,
                doc_icon, files, delivery_state, lifecycle_status,
                is_forwarded, reply_to, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.batch_id,
                message.conversation_type.value,
                message.reference_id,
                message.sender.user_id,
                message.sender.name,
                body.message_type,
                body.content,
                body.image_name,
                json.dumps(body.documents),
                body.doc_icon,
                json.dumps([{"filename": f.filename, "size": f.size} for f in body.files]),
                message.delivery_state.value,
                message.lifecycle_status.value,
                int(message.is_forwarded),
                message.reply_to,
                _ts(message.created_at),
                _ts(message.updated_at),
            ),
        )
        await self._conn.executemany(
            """
            INSERT INTO message_receivers (message_id, position, user_id, name)
            VALUES (?, ?, ?, ?)
            """,
            [
                (message.id, position, receiver.user_id, receiver.name)
                for position, receiver in enumerate(message.receivers)
            ],
        )

    async def _write(self, messages: list[Message]) -> None:
        async with self._write_lock:
            try:
                for message in messages:
                    await self._insert_message(message)
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise

    @store_call
    async def save_message(self, message: Message) -> None:
        """Persist one row in its own transaction."""
        await self._write([message])

    @store_call
    async def save_messages(self, messages: list[Message]) -> None:
        """Persist several rows in one transaction (all or nothing)."""
        await self._write(messages)

    async def _load_messages(
        self,
        where: str,
        params: list,
        order_by: str = "m.created_at DESC, m.rowid DESC",
        limit: int | None = None,
    ) -> list[Message]:
        query = f"SELECT {_MESSAGE_COLUMNS} FROM messages m WHERE {where} ORDER BY {order_by}"
        if limit is not None:
            query += " LIMIT ?"
            params = [*params, limit]

        cursor = await self._conn.execute(query, params)
        rows = await cursor.fetchall()
        if not rows:
            return []

        ids = [row[0] for row in rows]
        receivers: dict[str, list[Participant]] = {message_id: [] for message_id in ids}
        cursor = await self._conn.execute(
            f"""
            SELECT message_id, user_id, name
            FROM message_receivers
            WHERE message_id IN ({_placeholders(ids)})
            ORDER BY message_id, position
            """,
            ids,
        )
        for message_id, user_id, name in await cursor.fetchall():
            receivers[message_id].append(Participant(user_id=user_id, name=name))

        return [self._row_to_message(row, receivers[row[0]]) for row in rows]

    @staticmethod
    def _row_to_message(row, receivers: list[Participant]) -> Message:
        return Message(
            id=row[0],
            batch_id=row[1],
            conversation_type=ConversationType(row[2]),
            reference_id=row[3],
            sender=Participant(user_id=row[4], name=row[5]),
            receivers=receivers,
            body=MessageBody(
                message_type=row[6],
                content=row[7],
                image_name=row[8],
                documents=json.loads(row[9]),
                doc_icon=row[10],
                files=[FileAttachment(**f) for f in json.loads(row[11])],
            ),
            delivery_state=DeliveryState(row[12]),
            lifecycle_status=LifecycleStatus(row[13]),
            is_forwarded=bool(row[14]),
            reply_to=row[15],
            created_at=_parse_ts(row[16]),
            updated_at=_parse_ts(row[17]),
        )

    @store_call
    async def get_message(self, message_id: str) -> Message | None:
        """Get a row by id, including soft-deleted rows."""
        messages = await self._load_messages("m.id = ?", [message_id])
        return messages[0] if messages else None

    @store_call
    async def get_messages(self, message_ids: list[str]) -> list[Message]:
        """Get rows by id, including soft-deleted rows."""
        if not message_ids:
            return []
        return await self._load_messages(
            f"m.id IN ({_placeholders(message_ids)})", list(message_ids)
        )

    async def _update_row(self, message_id: str, assignment: str, params: list) -> bool:
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(
                    f"UPDATE messages SET {assignment}, updated_at = ? WHERE id = ?",
                    [*params, _ts(utcnow()), message_id],
                )
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise
            return cursor.rowcount > 0

    @store_call
    async def update_message_content(self, message_id: str, content: str) -> Message | None:
        """Replace body content; None if the row does not exist."""
        if not await self._update_row(message_id, "content = ?", [content]):
            return None
        messages = await self._load_messages("m.id = ?", [message_id])
        return messages[0]

    @store_call
    async def set_lifecycle_status(
        self, message_id: str, status: LifecycleStatus
    ) -> Message | None:
        """Set the soft-delete flag; None if the row does not exist."""
        if not await self._update_row(message_id, "lifecycle_status = ?", [status.value]):
            return None
        messages = await self._load_messages("m.id = ?", [message_id])
        return messages[0]

    @store_call
    async def find_history(
        self,
        conversation_type: ConversationType | None,
        user_id1: str,
        user_id2: str,
        skip: int,
        limit: int,
    ) -> list[Message]:
        """Rows of one page of send batches, newest batch first.

        Paging counts batches, so a broadcast fanned out to N receivers
        occupies one slot of the page.
        """
        where, params = history_filter(conversation_type, user_id1, user_id2)

        cursor = await self._conn.execute(
            f"""
            SELECT m.batch_id
            FROM messages m
            WHERE {where}
            GROUP BY m.batch_id
            ORDER BY MAX(m.created_at) DESC, MAX(m.rowid) DESC
            LIMIT ? OFFSET ?
            """,
            [*params, limit, skip],
        )
        batch_ids = [row[0] for row in await cursor.fetchall()]
        if not batch_ids:
            return []

        rows = await self._load_messages(
            f"{where} AND m.batch_id IN ({_placeholders(batch_ids)})",
            [*params, *batch_ids],
            order_by="m.rowid ASC",
        )
        rank = {batch_id: index for index, batch_id in enumerate(batch_ids)}
        return sorted(rows, key=lambda message: rank[message.batch_id])

    # Delivery state
    @store_call
    async def bulk_update_delivery_state(
        self,
        sender_id: str,
        receiver_ids: list[str],
        conversation_type: ConversationType | None,
        new_state: DeliveryState,
    ) -> tuple[int, int]:
        """Move pending rows to new_state. Returns (matched, modified)."""
        exists, receiver_params = _receiver_in(receiver_ids)
        if conversation_type is ConversationType.GROUP:
            clause = f"m.conversation_type = ? AND {exists}"
            params = [ConversationType.GROUP.value, *receiver_params]
        else:
            clause = f"m.sender_id = ? AND {exists}"
            params = [sender_id, *receiver_params]
        where = f"{_ACTIVE} AND {_PENDING} AND {clause}"

        async with self._write_lock:
            cursor = await self._conn.execute(
                f"SELECT COUNT(*) FROM messages m WHERE {where}", params
            )
            (matched,) = await cursor.fetchone()
            if not matched:
                return 0, 0

            try:
                cursor = await self._conn.execute(
                    f"""
                    UPDATE messages SET delivery_state = ?, updated_at = ?
                    WHERE id IN (
                        SELECT m.id FROM messages m
                        WHERE {where} AND m.delivery_state != ?
                    )
                    """,
                    [new_state.value, _ts(utcnow()), *params, new_state.value],
                )
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise
            return matched, cursor.rowcount

    @store_call
    async def set_delivery_state(self, message_id: str, state: DeliveryState) -> bool:
        """Set one row's delivery state. False if the row does not exist."""
        return await self._update_row(message_id, "delivery_state = ?", [state.value])

    @store_call
    async def count_pending_for_receiver(self, user_id: str) -> int:
        """Count non-deleted pending rows addressed to user_id."""
        exists, params = _receiver_is(user_id)
        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM messages m WHERE {_ACTIVE} AND {_PENDING} AND {exists}",
            params,
        )
        (count,) = await cursor.fetchone()
        return count

    @store_call
    async def list_pending_for_receiver(self, user_id: str, limit: int) -> list[Message]:
        """Newest non-deleted pending rows addressed to user_id."""
        exists, params = _receiver_is(user_id)
        return await self._load_messages(
            f"{_ACTIVE} AND {_PENDING} AND {exists}", params, limit=limit
        )

    # Users / memberships
    @store_call
    async def save_user(self, user: User) -> None:
        """Save a user."""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    "INSERT OR REPLACE INTO users (id, name, email) VALUES (?, ?, ?)",
                    (user.id, user.name, user.email),
                )
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise

    @store_call
    async def get_users(self, user_ids: list[str]) -> list[User]:
        """Get users by id in one query."""
        if not user_ids:
            return []
        cursor = await self._conn.execute(
            f"SELECT id, name, email FROM users WHERE id IN ({_placeholders(user_ids)})",
            list(user_ids),
        )
        return [User(id=row[0], name=row[1], email=row[2]) for row in await cursor.fetchall()]

    @store_call
    async def save_group(self, group: Group) -> None:
        """Save a group with its members."""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    "INSERT OR REPLACE INTO groups (id, name) VALUES (?, ?)",
                    (group.id, group.name),
                )
                await self._conn.execute(
                    "DELETE FROM group_members WHERE group_id = ?", (group.id,)
                )
                await self._conn.executemany(
                    """
                    INSERT INTO group_members (group_id, position, user_id, role)
                    VALUES (?, ?, ?, ?)
                    """,
                    [
                        (group.id, position, member.user_id, member.role.value)
                        for position, member in enumerate(group.members)
                    ],
                )
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise

    @store_call
    async def get_group(self, group_id: str) -> Group | None:
        """Get a group with its members."""
        cursor = await self._conn.execute(
            "SELECT id, name FROM groups WHERE id = ?", (group_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None

        cursor = await self._conn.execute(
            """
            SELECT user_id, role FROM group_members
            WHERE group_id = ? ORDER BY position
            """,
            (group_id,),
        )
        members = [
            GroupMember(user_id=user_id, role=MemberRole(role))
            for user_id, role in await cursor.fetchall()
        ]
        return Group(id=row[0], name=row[1], members=members)

    @store_call
    async def save_broadcast(self, broadcast: Broadcast) -> None:
        """Save a broadcast list with its members."""
        async with self._write_lock:
            try:
                await self._conn.execute(
                    "INSERT OR REPLACE INTO broadcasts (id, name) VALUES (?, ?)",
                    (broadcast.id, broadcast.name),
                )
                await self._conn.execute(
                    "DELETE FROM broadcast_members WHERE broadcast_id = ?", (broadcast.id,)
                )
                await self._conn.executemany(
                    """
                    INSERT INTO broadcast_members (broadcast_id, position, user_id)
                    VALUES (?, ?, ?)
                    """,
                    [
                        (broadcast.id, position, user_id)
                        for position, user_id in enumerate(broadcast.members)
                    ],
                )
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise

    @store_call
    async def get_broadcast(self, broadcast_id: str) -> Broadcast | None:
        """Get a broadcast list with its members."""
        cursor = await self._conn.execute(
            "SELECT id, name FROM broadcasts WHERE id = ?", (broadcast_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None

        cursor = await self._conn.execute(
            """
            SELECT user_id FROM broadcast_members
            WHERE broadcast_id = ? ORDER BY position
            """,
            (broadcast_id,),
        )
        members = [user_id for (user_id,) in await cursor.fetchall()]
        return Broadcast(id=row[0], name=row[1], members=members)

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        tables = [
            "message_receivers",
            "messages",
            "group_members",
            "groups",
            "broadcast_members",
            "broadcasts",
            "users",
        ]

        async with self._write_lock:
            try:
                for table in tables:
                    await self._conn.execute(f"DELETE FROM {table}")
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise
