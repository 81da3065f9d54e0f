"""API routes."""

from .chats import create_chat_router
from .health import create_health_router
from .relay import create_relay_router

__all__ = ["create_chat_router", "create_health_router", "create_relay_router"]
