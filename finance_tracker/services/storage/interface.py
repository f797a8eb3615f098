"""
Abstract Storage Interface

DESIGN DECISION: The ledger persists to a flat key/value document, the
same shape as a host's local preferences. We define an abstract
interface for it so that:
1. A JSON file on disk is the production backend
2. In-memory storage is used for testing
3. Business logic (LedgerStore) never touches files directly

The interface is intentionally small. Values are already-serialized
strings, numbers or booleans; encoding of entities is the store's job.
A multi-key write goes through ``commit`` so that it is applied as a
single replacement of the document and never observed half-done.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class KeyValueBackend(ABC):
    """
    Abstract interface for the key/value persistence layer.

    Implementations must raise StorageUnavailable when the underlying
    medium cannot be reached, and CorruptState when what they read back
    cannot be decoded.
    """

    @abstractmethod
    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Read one value.

        Args:
            key: Opaque string key
            default: Returned when the key was never written

        Raises:
            StorageUnavailable: If the backend cannot be read
            CorruptState: If the persisted document cannot be decoded
        """
        pass

    @abstractmethod
    def commit(
        self,
        updates: Mapping[str, Any],
        removals: tuple[str, ...] = (),
    ) -> None:
        """
        Apply several writes as one atomic replacement.

        Args:
            updates: Keys to set
            removals: Keys to delete

        Raises:
            StorageUnavailable: If the write cannot be completed
        """
        pass

    def put(self, key: str, value: Any) -> None:
        """Write a single value."""
        self.commit({key: value})

    def remove(self, key: str) -> None:
        """Delete a single key (no-op when absent)."""
        self.commit({}, removals=(key,))


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageUnavailable(StorageError):
    """The storage medium could not be reached in time."""
    pass


class CorruptState(StorageError):
    """Persisted data exists but cannot be decoded."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Stored value for '{key}' is corrupt: {message}")
