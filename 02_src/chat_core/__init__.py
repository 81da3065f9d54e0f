"""Chat core: message fan-out, history, delivery state and real-time relay."""

from .app import Application, IApplication
from .errors import AuthError, ChatError, NotFoundError, TransientError, ValidationError
from .event_bus import EventBus, IEventBus
from .identity import IdentityService, IIdentityService, TokenClaims, TokenService
from .membership import IMembershipService, MembershipService
from .messaging import ChatService, DeliveryStateUpdater, FanoutEngine, HistoryAggregator
from .models import (
    ConversationType,
    DeliveryState,
    LifecycleStatus,
    LogicalMessage,
    Message,
    Participant,
    SendRequest,
)
from .relay import DeletePolicy, RealtimeRelay, SessionRegistry
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Errors
    "ChatError",
    "ValidationError",
    "NotFoundError",
    "TransientError",
    "AuthError",
    # Models
    "ConversationType",
    "DeliveryState",
    "LifecycleStatus",
    "Participant",
    "Message",
    "LogicalMessage",
    "SendRequest",
    # Components
    "IStorage",
    "Storage",
    "IEventBus",
    "EventBus",
    "IIdentityService",
    "IdentityService",
    "TokenClaims",
    "TokenService",
    "IMembershipService",
    "MembershipService",
    "FanoutEngine",
    "HistoryAggregator",
    "DeliveryStateUpdater",
    "ChatService",
    "DeletePolicy",
    "RealtimeRelay",
    "SessionRegistry",
]
