"""Messaging module: fan-out, history, delivery state and soft delete."""

from .delivery import UNREAD_PREVIEW_LIMIT, DeliveryStateUpdater
from .fanout import FanoutEngine, IFanoutEngine
from .history import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, HistoryAggregator, collapse_rows
from .service import ChatService
from .wire import logical_to_wire, message_to_wire, unread_to_wire

__all__ = [
    "ChatService",
    "DeliveryStateUpdater",
    "FanoutEngine",
    "IFanoutEngine",
    "HistoryAggregator",
    "collapse_rows",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "UNREAD_PREVIEW_LIMIT",
    "logical_to_wire",
    "message_to_wire",
    "unread_to_wire",
]
