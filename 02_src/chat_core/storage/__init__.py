"""Storage module."""

from .storage import IStorage, Storage, history_filter, utcnow

__all__ = ["IStorage", "Storage", "history_filter", "utcnow"]
