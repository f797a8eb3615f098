"""
App passcode, stored as a SHA-256 hex digest.

Reads and writes go through LedgerStore so they share its writer lock
with every other change to the state file.
"""

import hashlib
import hmac

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.services.storage.ledger_store import (
    KEY_PASSCODE_ENABLED,
    KEY_PASSCODE_HASH,
    LedgerStore,
)

__all__ = ["KEY_PASSCODE_ENABLED", "KEY_PASSCODE_HASH", "PasscodeVault", "hash_passcode"]


def hash_passcode(passcode: str) -> str:
    return hashlib.sha256(passcode.encode("utf-8")).hexdigest()


class PasscodeVault:
    """Saves and checks the app passcode. The plaintext is never stored."""

    def __init__(self, store: LedgerStore):
        self._store = store
        self._logger = get_logger("security")

    def save(self, passcode: str) -> None:
        if not passcode:
            raise ValueError("Passcode must not be empty")
        self._store.set_passcode_hash(hash_passcode(passcode))
        self._logger.info(LogEvent.PASSCODE_CHANGED.value, action="saved")

    def verify(self, passcode: str) -> bool:
        """False when no passcode has been set."""
        stored = self._store.get_passcode_hash()
        if not stored:
            return False
        return hmac.compare_digest(stored, hash_passcode(passcode))

    def has_passcode(self) -> bool:
        return self._store.get_passcode_hash() is not None

    def is_enabled(self) -> bool:
        return self._store.is_passcode_enabled()

    def set_enabled(self, enabled: bool) -> None:
        self._store.set_passcode_enabled(enabled)
        self._logger.info(LogEvent.PASSCODE_CHANGED.value, action="enabled" if enabled else "disabled")

    def clear(self) -> None:
        """Remove the passcode and turn protection off."""
        self._store.clear_passcode()
        self._logger.info(LogEvent.PASSCODE_CHANGED.value, action="cleared")
