"""
Backup and Restore

BackupCodec converts between the ledger and the portable backup
document:

    {
      "transactions": [{"id", "title", "amount", "category", "type", "date", "note"}, ...],
      "categories":   [{"name", "type", "emoji"}, ...],
      "budget":       number,
      "currency":     string,
      "backupDate":   epoch milliseconds
    }

RESTORE RULES:
- transactions is required; missing or malformed rejects the restore.
- categories absent or malformed: the store's current categories are
  kept. This tolerance is intended.
- budget absent: 0 (unset). currency absent: "USD".
- A non-finite budget or an unsupported currency rejects the restore.
- All four fields are decoded before anything is written, and the
  write is a single store commit. A rejected restore leaves the store
  untouched.

BackupManager handles the files: where they go, what they are called,
and which one is the latest.
"""

import json
import math
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import pydantic
from pydantic import TypeAdapter

from finance_tracker.config.settings import BackupSettings
from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.models.ledger import Category, Transaction, epoch_ms
from finance_tracker.services.currency import CurrencyConverter
from finance_tracker.services.storage.ledger_store import LedgerStore

_TRANSACTIONS = TypeAdapter(list[Transaction])
_CATEGORIES = TypeAdapter(list[Category])

DEFAULT_RESTORE_CURRENCY = "USD"
LEGACY_PREFIX = "backup_"


class BackupError(Exception):
    """Base exception for backup and restore."""
    pass


class RestoreRejected(BackupError):
    """The backup document cannot be applied. The store was not modified."""
    pass


RestoredLedger = tuple[list[Transaction], list[Category], float, str]


class BackupCodec:
    """Encodes the ledger as a backup document and decodes it back."""

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self._converter = converter or CurrencyConverter()

    def export(self, store: LedgerStore, now: Optional[datetime] = None) -> dict[str, Any]:
        snapshot = store.snapshot()
        if now is not None:
            snapshot = snapshot.model_copy(update={"backup_date": epoch_ms(now)})
        return snapshot.to_document()

    def import_document(self, document: Any, store: LedgerStore) -> RestoredLedger:
        """
        Decode a backup document without writing anything.

        ``store`` is only read, to supply categories when the document
        has none.

        Raises:
            RestoreRejected: If a required field is missing or malformed
        """
        if not isinstance(document, dict):
            raise RestoreRejected("Backup file is not a ledger backup")

        if "transactions" not in document or document["transactions"] is None:
            raise RestoreRejected("Backup file has no transactions")
        try:
            transactions = _TRANSACTIONS.validate_python(document["transactions"])
        except pydantic.ValidationError as e:
            raise RestoreRejected(f"Backup transactions are invalid: {e}") from e

        ids = [tx.id for tx in transactions]
        if len(ids) != len(set(ids)):
            raise RestoreRejected("Backup contains duplicate transaction ids")

        categories = self._categories(document.get("categories"), store)
        budget = self._budget(document.get("budget"))
        currency = self._currency(document.get("currency"))
        return transactions, categories, budget, currency

    def restore(self, document: Any, store: LedgerStore) -> RestoredLedger:
        """
        Decode and apply a backup document in one step.

        Raises:
            RestoreRejected: If the document cannot be decoded
            StorageUnavailable: If the store cannot be written
        """
        with store.transaction():
            restored = self.import_document(document, store)
            store.replace_all(*restored)
        return restored

    @staticmethod
    def _categories(raw: Any, store: LedgerStore) -> list[Category]:
        if raw is None:
            return store.load_categories()
        try:
            return _CATEGORIES.validate_python(raw)
        except pydantic.ValidationError:
            return store.load_categories()

    @staticmethod
    def _budget(raw: Any) -> float:
        if raw is None:
            return 0.0
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise RestoreRejected(f"Backup budget is not a number: {raw!r}")
        if not math.isfinite(raw):
            raise RestoreRejected(f"Backup budget is not a finite number: {raw!r}")
        return float(raw)

    def _currency(self, raw: Any) -> str:
        if raw is None:
            return DEFAULT_RESTORE_CURRENCY
        if not isinstance(raw, str) or not raw.strip():
            raise RestoreRejected(f"Backup currency is not a currency code: {raw!r}")
        code = raw.strip()
        if not self._converter.is_supported(code):
            raise RestoreRejected(f"Backup currency is not supported: {code!r}")
        return code


# =============================================================================
# BACKUP FILES
# =============================================================================

class BackupLocation(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"

    @property
    def label(self) -> str:
        return "Internal Storage" if self is BackupLocation.INTERNAL else "External Storage"


class BackupManager:
    """Writes, finds and restores backup files."""

    def __init__(
        self,
        store: LedgerStore,
        settings: Optional[BackupSettings] = None,
        codec: Optional[BackupCodec] = None,
    ):
        self._store = store
        self._settings = settings or BackupSettings()
        self._codec = codec or BackupCodec()
        self._logger = get_logger("backup")

    def directory(self, location: BackupLocation) -> Path:
        if location == BackupLocation.INTERNAL:
            return Path(self._settings.internal_dir)
        return Path(self._settings.external_dir)

    def default_location(self) -> BackupLocation:
        if self._store.get_use_internal_storage_for_backup():
            return BackupLocation.INTERNAL
        return BackupLocation.EXTERNAL

    def create_backup(
        self,
        location: Optional[BackupLocation] = None,
        now: Optional[datetime] = None,
    ) -> Path:
        """
        Write a backup of the full ledger.

        Returns:
            Path of the new backup file

        Raises:
            BackupError: If the file cannot be written
        """
        location = location or self.default_location()
        now = now or datetime.now()
        folder = self.directory(location)
        path = folder / f"{self._settings.file_prefix}{now.strftime('%Y%m%d_%H%M%S')}.json"

        document = self._codec.export(self._store, now)
        text = json.dumps(document, ensure_ascii=False, indent=2)

        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            folder.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            self._logger.error(
                LogEvent.BACKUP_FAILED.value,
                path=str(path),
                location=location.value,
                error=str(e),
            )
            raise BackupError(f"Backup failed: could not write {path}: {e}") from e

        self._logger.info(
            LogEvent.BACKUP_CREATED.value,
            path=str(path),
            location=location.value,
            transactions=len(document["transactions"]),
        )
        return path

    def _is_backup_name(self, name: str) -> bool:
        return name.endswith(".json") and (
            name.startswith(self._settings.file_prefix) or name.startswith(LEGACY_PREFIX)
        )

    def list_backups(self) -> list[tuple[Path, BackupLocation]]:
        """Backup files from both locations, newest first."""
        found = []
        for location in (BackupLocation.INTERNAL, BackupLocation.EXTERNAL):
            folder = self.directory(location)
            if not folder.is_dir():
                continue
            for path in folder.iterdir():
                if path.is_file() and self._is_backup_name(path.name):
                    found.append((path, location))
        return sorted(found, key=lambda item: item[0].stat().st_mtime, reverse=True)

    def latest_backup_info(self) -> Optional[str]:
        """e.g. "Last backup: October 19, 2026 14:05 (Internal Storage)"."""
        backups = self.list_backups()
        if not backups:
            return None
        path, location = backups[0]
        modified = datetime.fromtimestamp(path.stat().st_mtime)
        return f"Last backup: {modified.strftime('%B %d, %Y %H:%M')} ({location.label})"

    def restore_from_file(self, path: Path) -> RestoredLedger:
        """
        Replace the ledger with the contents of a backup file.

        Raises:
            RestoreRejected: If the file is unreadable or not a valid backup
        """
        path = Path(path)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise self._rejected(path, f"Cannot read backup file {path.name}: {e}") from e
        except json.JSONDecodeError as e:
            raise self._rejected(path, f"Backup file {path.name} is not valid JSON: {e}") from e

        try:
            restored = self._codec.restore(document, self._store)
        except RestoreRejected as e:
            self._logger.warning(LogEvent.RESTORE_REJECTED.value, path=str(path), reason=str(e))
            raise

        transactions, categories, budget, currency = restored
        self._logger.info(
            LogEvent.RESTORE_APPLIED.value,
            path=str(path),
            transactions=len(transactions),
            categories=len(categories),
            currency=currency,
        )
        return restored

    def _rejected(self, path: Path, reason: str) -> RestoreRejected:
        self._logger.warning(LogEvent.RESTORE_REJECTED.value, path=str(path), reason=reason)
        return RestoreRejected(reason)
