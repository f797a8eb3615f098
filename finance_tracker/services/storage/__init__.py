"""
Storage Services Package

Key/value backends and the LedgerStore built on top of them. The
backend is swappable: JSON file on disk in production, in-memory for
tests and embedding.
"""

from finance_tracker.services.storage.interface import (
    CorruptState,
    KeyValueBackend,
    StorageError,
    StorageUnavailable,
)
from finance_tracker.services.storage.json_file import JsonFileBackend
from finance_tracker.services.storage.ledger_store import LedgerStore
from finance_tracker.services.storage.memory import InMemoryBackend

__all__ = [
    # Interfaces
    "KeyValueBackend",
    # Exceptions
    "CorruptState",
    "StorageError",
    "StorageUnavailable",
    # Implementations
    "InMemoryBackend",
    "JsonFileBackend",
    "LedgerStore",
]
