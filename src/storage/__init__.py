"""Persistence for events, alerts, blocklist entries and stats snapshots."""

from src.storage.base import Store, StoreError
from src.storage.memory import MemoryStore
from src.storage.sqlite import SQLiteStore

__all__ = ["MemoryStore", "SQLiteStore", "Store", "StoreError"]
