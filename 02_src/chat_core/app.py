"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import Settings, load_settings, resolve_db_path
from .event_bus import EventBus
from .identity import IdentityService, TokenService
from .logging_config import get_logger
from .membership import MembershipService
from .messaging import ChatService, DeliveryStateUpdater, FanoutEngine, HistoryAggregator
from .relay import DeletePolicy, RealtimeRelay, SessionRegistry
from .storage import IStorage, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(self, settings: Settings | None = None, db_path: str | None = None):
        self._settings = settings or load_settings()
        env_db_path = self._settings.database_url if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)

        # Tokens need no I/O, so they are usable before start()
        self._tokens = TokenService(
            secret=self._settings.jwt_secret,
            algorithm=self._settings.jwt_algorithm,
            expires_in=self._settings.jwt_expires_in,
        )

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._identity: IdentityService | None = None
        self._membership: MembershipService | None = None
        self._event_bus: EventBus | None = None
        self._sessions: SessionRegistry | None = None
        self._relay: RealtimeRelay | None = None
        self._chat: ChatService | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path, timeout=self._settings.store_timeout_seconds)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Identity and membership collaborators (depend on Storage)
        self._identity = IdentityService(self._storage)
        self._membership = MembershipService(self._storage)

        # 3. EventBus (no dependencies)
        self._event_bus = EventBus(max_queue_size=self._settings.relay_queue_size)

        # 4. Relay (depends on EventBus + Membership)
        self._sessions = SessionRegistry()
        self._relay = RealtimeRelay(
            event_bus=self._event_bus,
            registry=self._sessions,
            membership=self._membership,
            delete_policy=DeletePolicy(self._settings.relay_delete_policy),
            send_timeout=self._settings.relay_send_timeout,
        )
        await self._relay.start()
        await self._event_bus.start()
        logger.info(
            "Relay started with %s delete policy", self._relay.delete_policy.value
        )

        # 5. Messaging core (depends on Storage, Identity, Relay)
        self._chat = ChatService(
            storage=self._storage,
            fanout=FanoutEngine(
                self._storage, self._identity, atomic=self._settings.fanout_atomic
            ),
            history=HistoryAggregator(self._storage),
            delivery=DeliveryStateUpdater(self._storage),
            relay=self._relay,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._event_bus:
            await self._event_bus.stop()
        if self._relay:
            await self._relay.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._event_bus:
            await self._event_bus.drain()
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._identity:
            self._identity.forget()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def tokens(self) -> TokenService:
        return self._tokens

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def identity(self) -> IdentityService:
        """Get identity service."""
        if not self._identity:
            raise RuntimeError("Application not started")
        return self._identity

    @property
    def membership(self) -> MembershipService:
        """Get membership service."""
        if not self._membership:
            raise RuntimeError("Application not started")
        return self._membership

    @property
    def event_bus(self) -> EventBus:
        """Get event bus instance."""
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def relay(self) -> RealtimeRelay:
        """Get relay instance."""
        if not self._relay:
            raise RuntimeError("Application not started")
        return self._relay

    @property
    def chat(self) -> ChatService:
        """Get chat service instance."""
        if not self._chat:
            raise RuntimeError("Application not started")
        return self._chat
