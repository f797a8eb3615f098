"""
Ledger Store

The single authoritative owner of ledger state: transactions,
categories, budget, currency code and a handful of flags. Every other
component reads snapshots from here or asks it to mutate.

DESIGN DECISIONS:
1. One backing store. There is no secondary copy to fall back to; if
   the backend fails, the operation fails with StorageUnavailable.
2. Collections are replaced whole. save_transactions writes the full
   list in one backend commit, so no reader ever sees half of a save.
3. One writer at a time. All operations go through a re-entrant lock
   with a bounded wait; a caller that cannot get the lock in time gets
   StorageUnavailable rather than hanging.
4. Undecodable stored data raises CorruptState. It is never reported as
   an empty ledger.

The only tolerant default is the category list: when nothing (or an
empty list) is stored, the seeded default categories are returned.
"""

import math
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import pydantic
from pydantic import TypeAdapter

from finance_tracker.config.settings import LedgerSettings, ReminderSettings
from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.models.ledger import (
    DEFAULT_CATEGORIES,
    BackupSnapshot,
    Category,
    Transaction,
    TxType,
)
from finance_tracker.services.currency import CurrencyConverter
from finance_tracker.services.storage.interface import (
    CorruptState,
    KeyValueBackend,
    StorageUnavailable,
)
from finance_tracker.validation.validator import (
    LedgerValidator,
    ValidationError,
    raise_if_errors,
)

KEY_TRANSACTIONS = "transactions"
KEY_CATEGORIES = "categories"
KEY_BUDGET = "budget"
KEY_CURRENCY = "currency"
KEY_ONBOARDING_COMPLETED = "onboarding_completed"
KEY_USE_INTERNAL_STORAGE = "use_internal_storage"
KEY_REMINDER_HOUR = "reminder_hour"
KEY_REMINDER_MINUTE = "reminder_minute"
KEY_PASSCODE_HASH = "passcode_hash"
KEY_PASSCODE_ENABLED = "passcode_enabled"

_TRANSACTIONS = TypeAdapter(list[Transaction])
_CATEGORIES = TypeAdapter(list[Category])


class LedgerStore:
    """
    Durable key/value persistence of the ledger.

    Construct with ``LedgerStore.open(...)`` to also run the one-time
    sentinel purge.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        settings: Optional[LedgerSettings] = None,
        reminder_settings: Optional[ReminderSettings] = None,
        lock_timeout: float = 5.0,
        validator: Optional[LedgerValidator] = None,
    ):
        self._backend = backend
        self._settings = settings or LedgerSettings()
        self._reminder_settings = reminder_settings or ReminderSettings()
        self._lock = threading.RLock()
        self._lock_timeout = lock_timeout
        self._validator = validator or LedgerValidator()
        self._logger = get_logger("ledger_store")

    @classmethod
    def open(
        cls,
        backend: KeyValueBackend,
        settings: Optional[LedgerSettings] = None,
        reminder_settings: Optional[ReminderSettings] = None,
        lock_timeout: float = 5.0,
    ) -> "LedgerStore":
        """Create a store and run the sentinel purge sweep."""
        store = cls(
            backend,
            settings=settings,
            reminder_settings=reminder_settings,
            lock_timeout=lock_timeout,
        )
        removed = store.purge_sentinel_transactions()
        store._logger.info(LogEvent.STORE_LOADED.value, sentinel_removed=removed)
        return store

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StorageUnavailable(
                f"Ledger store busy for more than {self._lock_timeout}s"
            )
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def transaction(self) -> Iterator["LedgerStore"]:
        """
        Hold the writer lock across several calls.

        Used by collaborators that need read-modify-write sequences
        (restore, currency change) to not interleave with other writers.
        """
        with self._exclusive():
            yield self

    # =========================================================================
    # ENCODING HELPERS
    # =========================================================================

    def _commit(self, updates: dict[str, Any], removals: tuple[str, ...] = ()) -> None:
        self._backend.commit(updates, removals=removals)
        self._logger.debug(LogEvent.STORE_WRITE.value, keys=sorted(updates), removed=list(removals))

    def _read_list(self, key: str, adapter: TypeAdapter) -> Optional[list]:
        raw = self._backend.get(key)
        if raw is None or raw == "":
            return None
        if not isinstance(raw, str):
            raise CorruptState(key, f"expected a JSON string, found {type(raw).__name__}")
        try:
            return adapter.validate_json(raw)
        except pydantic.ValidationError as e:
            self._logger.error(LogEvent.STORE_READ_FAILED.value, key=key, error=str(e))
            raise CorruptState(key, str(e)) from e

    def _read_number(self, key: str, default: float) -> float:
        raw = self._backend.get(key)
        if raw is None:
            return default
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise CorruptState(key, f"expected a number, found {raw!r}")
        if not math.isfinite(raw):
            raise CorruptState(key, f"expected a finite number, found {raw!r}")
        return float(raw)

    def _read_flag(self, key: str) -> bool:
        raw = self._backend.get(key)
        if raw is None:
            return False
        if not isinstance(raw, bool):
            raise CorruptState(key, f"expected a boolean, found {raw!r}")
        return raw

    @staticmethod
    def _encode_transactions(transactions: list[Transaction]) -> str:
        return _TRANSACTIONS.dump_json(list(transactions)).decode("utf-8")

    @staticmethod
    def _encode_categories(categories: list[Category]) -> str:
        return _CATEGORIES.dump_json(list(categories)).decode("utf-8")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def load_transactions(self) -> list[Transaction]:
        """
        All transactions, in stored order.

        Callers sort explicitly for presentation.
        """
        with self._exclusive():
            return self._read_list(KEY_TRANSACTIONS, _TRANSACTIONS) or []

    def save_transactions(self, transactions: list[Transaction]) -> None:
        """Replace the full transaction set."""
        with self._exclusive():
            ids = [tx.id for tx in transactions]
            if len(ids) != len(set(ids)):
                raise ValidationError.single(
                    field="id",
                    issue_type="duplicate",
                    message="Transaction ids must be unique",
                )
            self._commit({KEY_TRANSACTIONS: self._encode_transactions(transactions)})

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._exclusive():
            transactions = self.load_transactions()
            if any(tx.id == transaction.id for tx in transactions):
                raise ValidationError.single(
                    field="id",
                    issue_type="duplicate",
                    message=f"Transaction {transaction.id} already exists",
                )
            transactions.append(transaction)
            self.save_transactions(transactions)
            return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        """Replace the stored transaction that has the same id."""
        with self._exclusive():
            transactions = self.load_transactions()
            for index, existing in enumerate(transactions):
                if existing.id == transaction.id:
                    transactions[index] = transaction
                    self.save_transactions(transactions)
                    return transaction
            raise ValidationError.single(
                field="id",
                issue_type="not_found",
                message=f"Transaction {transaction.id} does not exist",
            )

    def delete_transaction(self, transaction_id: str) -> bool:
        """Delete by id. Returns False when no such transaction exists."""
        with self._exclusive():
            transactions = self.load_transactions()
            remaining = [tx for tx in transactions if tx.id != transaction_id]
            if len(remaining) == len(transactions):
                return False
            self.save_transactions(remaining)
            return True

    def purge_sentinel_transactions(self) -> int:
        """
        Remove transactions titled exactly like the reserved sentinel.

        Idempotent: a second run finds nothing and writes nothing.
        Returns how many transactions were removed.
        """
        sentinel = self._settings.sentinel_title
        with self._exclusive():
            transactions = self.load_transactions()
            kept = [tx for tx in transactions if tx.title != sentinel]
            removed = len(transactions) - len(kept)
            if removed:
                self.save_transactions(kept)
                self._logger.info(
                    LogEvent.SENTINEL_PURGED.value,
                    removed=removed,
                    sentinel=sentinel,
                )
            return removed

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def load_categories(self) -> list[Category]:
        """Stored categories, or the seeded defaults when none are stored."""
        with self._exclusive():
            categories = self._read_list(KEY_CATEGORIES, _CATEGORIES)
            if not categories:
                return list(DEFAULT_CATEGORIES)
            return categories

    def save_categories(self, categories: list[Category]) -> None:
        """Replace the full category set. (name, type) pairs must be unique."""
        keys = [(c.name, c.type) for c in categories]
        if len(keys) != len(set(keys)):
            raise ValidationError.single(
                field="name",
                issue_type="duplicate",
                message="Category (name, type) pairs must be unique",
            )
        with self._exclusive():
            self._commit({KEY_CATEGORIES: self._encode_categories(categories)})

    def add_category(self, category: Category) -> Category:
        with self._exclusive():
            categories = self.load_categories()
            raise_if_errors(self._validator.category_issues(category, categories))
            categories.append(category)
            self.save_categories(categories)
            return category

    def update_category(self, original: Category, updated: Category) -> Category:
        """Replace the (name, type) entry of ``original`` with ``updated``."""
        with self._exclusive():
            categories = self.load_categories()
            if not any(c.same_key(original) for c in categories):
                raise ValidationError.single(
                    field="name",
                    issue_type="not_found",
                    message=f"Category '{original.name}' does not exist",
                )
            raise_if_errors(
                self._validator.category_issues(updated, categories, editing=original)
            )
            self.save_categories([
                updated if c.same_key(original) else c for c in categories
            ])
            return updated

    def is_category_in_use(self, name: str) -> bool:
        """
        Whether any transaction references ``name``.

        Name-only and case-sensitive: the kind is not compared.
        """
        return any(tx.category == name for tx in self.load_transactions())

    def delete_category(self, name: str, type: TxType) -> None:
        """
        Delete exactly one (name, type) category.

        Raises:
            ValidationError: If a transaction still uses the name, or
                the category does not exist
        """
        with self._exclusive():
            if self.is_category_in_use(name):
                raise ValidationError.single(
                    field="name",
                    issue_type="in_use",
                    message=(
                        "This category is used in one or more transactions. "
                        "Delete those transactions first."
                    ),
                )
            categories = self.load_categories()
            remaining = [c for c in categories if not (c.name == name and c.type == type)]
            if len(remaining) == len(categories):
                raise ValidationError.single(
                    field="name",
                    issue_type="not_found",
                    message=f"Category '{name}' does not exist",
                )
            self.save_categories(remaining)

    # =========================================================================
    # BUDGET & CURRENCY
    # =========================================================================

    def get_budget(self) -> float:
        """Monthly budget; zero or negative means unset."""
        with self._exclusive():
            return self._read_number(KEY_BUDGET, 0.0)

    def set_budget(self, amount: Any) -> float:
        """
        Set a new positive budget, overwriting the old one.

        Raises:
            ValidationError: If the amount is missing or not positive
        """
        raise_if_errors(self._validator.budget_issues(amount))
        value = float(amount)
        self.store_budget(value)
        return value

    def store_budget(self, amount: float) -> None:
        """Write the budget without validation (rebase and restore paths)."""
        with self._exclusive():
            self._commit({KEY_BUDGET: float(amount)})

    def clear_budget(self) -> None:
        self.store_budget(0.0)

    def get_currency(self) -> str:
        with self._exclusive():
            raw = self._backend.get(KEY_CURRENCY)
            if raw is None or raw == "":
                return self._settings.default_currency
            if not isinstance(raw, str):
                raise CorruptState(KEY_CURRENCY, f"expected a string, found {raw!r}")
            return raw

    def set_currency(self, code: str) -> None:
        """
        Overwrite the currency code without touching amounts.

        Use change_currency() to switch currency and rebase together.
        """
        if not code or not code.strip():
            raise ValidationError.single(
                field="currency",
                issue_type="missing",
                message="Currency code must not be empty",
            )
        with self._exclusive():
            self._commit({KEY_CURRENCY: code.strip()})

    def change_currency(self, new_code: str, converter: CurrencyConverter) -> float:
        """
        Switch the ledger currency, rebasing every stored amount.

        Order matters: transactions and budget are rebased and written
        first, and only then is the new code written. An interruption
        between the two writes leaves amounts converted under the old
        code, which can be repaired, never new code over old amounts.

        Returns the factor applied (1.0 when the currency is unchanged).

        Raises:
            ValidationError: If either currency is not supported
        """
        with self._exclusive():
            old_code = self.get_currency()
            factor = converter.conversion_factor(old_code, new_code)
            if old_code == new_code:
                return factor

            transactions = converter.rebase(self.load_transactions(), factor)
            budget = converter.rebase_budget(self.get_budget(), factor)

            self._commit({
                KEY_TRANSACTIONS: self._encode_transactions(transactions),
                KEY_BUDGET: float(budget),
            })
            self._commit({KEY_CURRENCY: new_code})

            self._logger.info(
                LogEvent.CURRENCY_CHANGED.value,
                from_currency=old_code,
                to_currency=new_code,
                factor=factor,
                transactions=len(transactions),
            )
            return factor

    # =========================================================================
    # FLAGS & REMINDER TIME
    # =========================================================================

    def is_onboarding_completed(self) -> bool:
        with self._exclusive():
            return self._read_flag(KEY_ONBOARDING_COMPLETED)

    def set_onboarding_completed(self, completed: bool) -> None:
        with self._exclusive():
            self._commit({KEY_ONBOARDING_COMPLETED: bool(completed)})

    def get_use_internal_storage_for_backup(self) -> bool:
        with self._exclusive():
            return self._read_flag(KEY_USE_INTERNAL_STORAGE)

    def set_use_internal_storage_for_backup(self, use_internal: bool) -> None:
        with self._exclusive():
            self._commit({KEY_USE_INTERNAL_STORAGE: bool(use_internal)})

    def get_reminder_time(self) -> tuple[int, int]:
        """Persisted (hour, minute) of the daily reminder."""
        with self._exclusive():
            hour = self._read_number(KEY_REMINDER_HOUR, self._reminder_settings.default_hour)
            minute = self._read_number(KEY_REMINDER_MINUTE, self._reminder_settings.default_minute)
            return int(hour), int(minute)

    def set_reminder_time(self, hour: int, minute: int) -> None:
        raise_if_errors(self._validator.reminder_time_issues(hour, minute))
        with self._exclusive():
            self._commit({KEY_REMINDER_HOUR: hour, KEY_REMINDER_MINUTE: minute})

    # =========================================================================
    # WHOLE-LEDGER OPERATIONS
    # =========================================================================

    def snapshot(self) -> BackupSnapshot:
        """Consistent copy of the full ledger, read under the writer lock."""
        with self._exclusive():
            return BackupSnapshot(
                transactions=self.load_transactions(),
                categories=self.load_categories(),
                budget=self.get_budget(),
                currency=self.get_currency(),
            )

    def replace_all(
        self,
        transactions: list[Transaction],
        categories: list[Category],
        budget: float,
        currency: str,
    ) -> None:
        """Overwrite the four ledger fields in a single backend commit."""
        with self._exclusive():
            self._commit({
                KEY_TRANSACTIONS: self._encode_transactions(transactions),
                KEY_CATEGORIES: self._encode_categories(categories),
                KEY_BUDGET: float(budget),
                KEY_CURRENCY: currency,
            })

    # =========================================================================
    # PASSCODE
    # =========================================================================

    def get_passcode_hash(self) -> Optional[str]:
        with self._exclusive():
            raw = self._backend.get(KEY_PASSCODE_HASH)
            if raw is None or raw == "":
                return None
            if not isinstance(raw, str):
                raise CorruptState(KEY_PASSCODE_HASH, f"expected a string, found {type(raw).__name__}")
            return raw

    def set_passcode_hash(self, digest: str) -> None:
        with self._exclusive():
            self._commit({KEY_PASSCODE_HASH: digest})

    def is_passcode_enabled(self) -> bool:
        with self._exclusive():
            return self._read_flag(KEY_PASSCODE_ENABLED)

    def set_passcode_enabled(self, enabled: bool) -> None:
        with self._exclusive():
            self._commit({KEY_PASSCODE_ENABLED: bool(enabled)})

    def clear_passcode(self) -> None:
        """Drop the hash and turn protection off in one commit."""
        with self._exclusive():
            self._commit({KEY_PASSCODE_ENABLED: False}, removals=(KEY_PASSCODE_HASH,))
