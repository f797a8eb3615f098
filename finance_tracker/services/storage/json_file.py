"""
JSON File Storage Implementation

DESIGN DECISION: The whole key/value state lives in one small JSON
document on local disk because:
1. A personal ledger is tiny (thousands of rows at most)
2. The user can inspect or copy the file directly
3. A whole-document replace gives us atomic multi-key writes for free

TRADEOFFS:
- Every read parses the full document (fine at this scale)
- Writes are serialized by the caller (LedgerStore holds the lock)

Writes go to a temporary sibling file which is fsynced and then moved
over the original with os.replace, so readers see either the old or
the new document, never a partial one.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from finance_tracker.logs import LogEvent, get_logger
from finance_tracker.services.storage.interface import (
    CorruptState,
    KeyValueBackend,
    StorageUnavailable,
)

DOCUMENT_KEY = "<document>"


class JsonFileBackend(KeyValueBackend):
    """
    KeyValueBackend persisted as a single JSON object in a file.

    Transient OS errors are retried with exponential backoff, bounded
    both by attempt count and by total elapsed time; when the budget is
    spent the error surfaces as StorageUnavailable.
    """

    def __init__(
        self,
        path: Path,
        timeout_seconds: float = 5.0,
        retry_attempts: int = 3,
    ):
        self._path = Path(path)
        self._timeout = timeout_seconds
        self._attempts = retry_attempts
        self._logger = get_logger("json_file_backend")

    @property
    def path(self) -> Path:
        return self._path

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._attempts) | stop_after_delay(self._timeout),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    def _read_text(self) -> Optional[str]:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def _write_text(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _load_document(self) -> dict[str, Any]:
        try:
            text = self._retrying()(self._read_text)
        except UnicodeDecodeError as e:
            raise CorruptState(DOCUMENT_KEY, f"not valid UTF-8: {e}") from e
        except OSError as e:
            self._logger.error(
                LogEvent.STORE_READ_FAILED.value,
                path=str(self._path),
                error=str(e),
            )
            raise StorageUnavailable(f"Cannot read {self._path}: {e}") from e

        if text is None or not text.strip():
            return {}

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptState(DOCUMENT_KEY, str(e)) from e

        if not isinstance(document, dict):
            raise CorruptState(DOCUMENT_KEY, "top-level value is not an object")
        return document

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._load_document().get(key, default)

    def commit(
        self,
        updates: Mapping[str, Any],
        removals: tuple[str, ...] = (),
    ) -> None:
        document = self._load_document()
        document.update(updates)
        for key in removals:
            document.pop(key, None)

        text = json.dumps(document, ensure_ascii=False, indent=2)
        try:
            self._retrying()(self._write_text, text)
        except OSError as e:
            self._logger.error(
                LogEvent.STORE_WRITE_FAILED.value,
                path=str(self._path),
                keys=sorted(updates),
                error=str(e),
            )
            raise StorageUnavailable(f"Cannot write {self._path}: {e}") from e
