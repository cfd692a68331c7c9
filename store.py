"""Persistence for the task document.

The whole document is a single JSON object keyed by user id, each value an
ordered array of task objects. It is read in full for every operation and
written back in full after every mutation.
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List
from uuid import uuid4

logger = logging.getLogger(__name__)

Document = Dict[str, List[Dict[str, Any]]]


class StorageError(Exception):
    """The persisted document could not be read or written."""


class Store:
    """Base store. Subclasses provide `_read` and `_write`.

    `lock` guards the read-modify-write cycle. Callers that mutate the
    document hold it across load and save; plain reads do not take it.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._open = False

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_open(self):
        if not self._open:
            raise StorageError("Store is closed")

    def _read(self) -> Any:
        raise NotImplementedError

    def _write(self, document: Document) -> None:
        raise NotImplementedError

    def load(self) -> Document:
        """Return the persisted document, or an empty one if absent or malformed."""
        self._check_open()
        data = self._read()
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Persisted document is not an object, starting empty")
            return {}
        return data

    def save(self, document: Document) -> None:
        self._check_open()
        self._write(document)

    def get_user_tasks(self, user_id: str) -> List[Dict[str, Any]]:
        tasks = self.load().get(user_id)
        if not isinstance(tasks, list):
            return []
        return tasks

    def set_user_tasks(self, user_id: str, tasks: List[Dict[str, Any]]) -> None:
        with self.lock:
            document = self.load()
            document[user_id] = tasks
            self.save(document)


class JsonFileStore(Store):
    """Store backed by one JSON file, replaced atomically on every save."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory: {e}") from e
        super().open()
        logger.info("Opened task store at %s", self.path)

    def close(self) -> None:
        super().close()
        logger.info("Closed task store at %s", self.path)

    def _read(self) -> Any:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No data file at %s, starting empty", self.path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read data file: {e}") from e
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Malformed data file %s (%s), starting empty", self.path, e)
            return None

    def _write(self, document: Document) -> None:
        # unique temp name so two processes never share one
        tmp_path = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}.{uuid4().hex[:6]}")
        try:
            tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write %s: %s", self.path, e)
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise StorageError(f"Cannot write data file: {e}") from e


class MemoryStore(Store):
    """In-memory store for tests. Keeps the document as serialized JSON so
    callers never share mutable state with it, same as with a file."""

    def __init__(self, document=None):
        super().__init__()
        self._raw = json.dumps(document) if document is not None else None
        self.open()

    def _read(self) -> Any:
        if self._raw is None:
            return None
        try:
            return json.loads(self._raw)
        except json.JSONDecodeError:
            logger.warning("Malformed in-memory document, starting empty")
            return None

    def _write(self, document: Document) -> None:
        try:
            self._raw = json.dumps(document)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize document: {e}") from e
