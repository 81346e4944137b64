"""
Key-Value Backends

- InMemoryBackend: a dict. Used in tests and for throwaway sessions.
- JsonFileBackend: every slot in one JSON document on disk, rewritten
  atomically (temp file + rename) on each change.

TRADEOFFS:
- The file backend rewrites the whole document per write (fine for
  personal-finance volumes)
- No cross-process locking; one app instance owns the file
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator, Optional, Union

from spendwise.errors import StorageError
from spendwise.log import get_logger
from spendwise.services.storage.interface import KeyValueBackend


logger = get_logger(__name__)


class InMemoryBackend(KeyValueBackend):
    """Dictionary-backed slots."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, slot: str) -> Optional[str]:
        with self._lock:
            return self._data.get(slot)

    def set(self, slot: str, value: str) -> None:
        with self._lock:
            self._data[slot] = value

    def delete(self, slot: str) -> None:
        with self._lock:
            self._data.pop(slot, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))


class JsonFileBackend(KeyValueBackend):
    """
    All slots in a single JSON object on disk.

    The document is read once at construction. An unreadable document is
    logged and treated as empty; it is replaced on the next write.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = threading.RLock()
        self._data: dict[str, str] = self._read_document()

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("kv_document_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(document, dict):
            logger.warning("kv_document_unreadable", path=str(self._path), error="not a JSON object")
            return {}
        return {str(k): v for k, v in document.items() if isinstance(v, str)}

    def _write_document(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent),
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"Failed to write {self._path}: {e}") from e

    def get(self, slot: str) -> Optional[str]:
        with self._lock:
            return self._data.get(slot)

    def set(self, slot: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(slot)
            self._data[slot] = value
            try:
                self._write_document()
            except StorageError:
                if previous is None:
                    self._data.pop(slot, None)
                else:
                    self._data[slot] = previous
                raise

    def delete(self, slot: str) -> None:
        with self._lock:
            if slot not in self._data:
                return
            previous = self._data.pop(slot)
            try:
                self._write_document()
            except StorageError:
                self._data[slot] = previous
                raise

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))
