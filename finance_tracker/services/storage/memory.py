"""In-memory key/value backend, used by tests and throwaway sessions."""

import copy
from typing import Any, Mapping, Optional

from finance_tracker.services.storage.interface import (
    KeyValueBackend,
    StorageUnavailable,
)


class InMemoryBackend(KeyValueBackend):
    """
    Dict-backed implementation of KeyValueBackend.

    ``available`` can be switched off to simulate an unreachable medium.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})
        self.available = True
        self.commit_count = 0

    def _ensure_available(self) -> None:
        if not self.available:
            raise StorageUnavailable("In-memory backend is switched off")

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        self._ensure_available()
        return copy.deepcopy(self._data.get(key, default))

    def commit(
        self,
        updates: Mapping[str, Any],
        removals: tuple[str, ...] = (),
    ) -> None:
        self._ensure_available()
        data = dict(self._data)
        data.update(copy.deepcopy(dict(updates)))
        for key in removals:
            data.pop(key, None)
        self._data = data
        self.commit_count += 1

    def raw(self) -> dict[str, Any]:
        """Copy of everything stored (for inspection in tests)."""
        return copy.deepcopy(self._data)
