"""Real-time relay module."""

from .relay import DeletePolicy, RealtimeRelay
from .sessions import SessionRegistry

__all__ = ["DeletePolicy", "RealtimeRelay", "SessionRegistry"]
