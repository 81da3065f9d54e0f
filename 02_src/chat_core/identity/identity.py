"""Identity lookups used to denormalize display names."""

from typing import Protocol

from ..logging_config import get_logger, log_context
from ..models import User
from ..storage import IStorage

logger = get_logger(__name__)


class IIdentityService(Protocol):
    """Resolves user ids to identity references."""

    async def find_by_ids(self, user_ids: list[str]) -> list[User]:
        """Batch lookup; unknown ids are simply absent from the result."""
        ...

    async def find_by_id(self, user_id: str) -> User | None:
        """Single lookup."""
        ...


class IdentityService:
    """Identity lookups backed by the users table.

    The table is fed from authenticated callers: every verified bearer token
    carries ``{userId, name, email}`` and is passed to :meth:`observe`.
    User CRUD lives outside this core and may call :meth:`register` directly.
    """

    def __init__(self, storage: IStorage):
        self._storage = storage
        # user_id -> (name, email) last written by observe()
        self._observed: dict[str, tuple[str, str | None]] = {}

    async def find_by_ids(self, user_ids: list[str]) -> list[User]:
        """Batch lookup in a single query over the distinct ids."""
        unique_ids = list(dict.fromkeys(user_ids))
        return await self._storage.get_users(unique_ids)

    async def find_by_id(self, user_id: str) -> User | None:
        """Single lookup."""
        users = await self._storage.get_users([user_id])
        return users[0] if users else None

    async def register(self, user: User) -> None:
        """Record an identity reference."""
        await self._storage.save_user(user)
        self._observed.pop(user.id, None)

    async def observe(self, user: User) -> None:
        """Upsert the identity of an authenticated caller.

        Writes only when the name or email differs from the last one seen
        in this process. Callers without a display name are skipped.
        """
        if not user.name:
            return
        seen = (user.name, user.email)
        if self._observed.get(user.id) == seen:
            return

        await self._storage.save_user(user)
        self._observed[user.id] = seen
        logger.debug("Identity recorded", extra=log_context(user_id=user.id))

    def forget(self) -> None:
        """Drop the observe() cache, e.g. after the store was cleared."""
        self._observed.clear()
