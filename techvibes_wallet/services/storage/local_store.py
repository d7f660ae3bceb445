"""
Local Key-Value Storage Implementations

- JsonFileStorage: one JSON document on disk, rewritten atomically.
  Stands in for the platform secure store on desktop and in tooling.
- InMemoryStorage: process-local dict for tests and ephemeral sessions.

TRADEOFFS:
- The JSON file is rewritten in full on every save (fine for a handful
  of keys)
- No cross-process locking; one app instance owns the file
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from techvibes_wallet.audit import get_logger
from techvibes_wallet.config import get_settings
from techvibes_wallet.services.storage.interface import (
    CorruptDataError,
    KeyValueStorageInterface,
    StorageError,
)

logger = get_logger(__name__)


class JsonFileStorage(KeyValueStorageInterface):
    """
    Key-value storage backed by a single JSON object file.
    """

    def __init__(self, path: Optional[str | Path] = None):
        self._path = Path(path or get_settings().storage.storage_path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptDataError(f"Storage file {self._path} is not valid UTF-8: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Storage file {self._path} is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise CorruptDataError(f"Storage file {self._path} does not hold an object")
        return data

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def get_item(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    async def save_item(self, key: str, value: Any) -> bool:
        data = self._read_all()
        data[key] = value
        try:
            self._write_all(data)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save {key}: {e}")
        logger.debug("storage_saved", key=key)
        return True

    async def remove_item(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return False
        del data[key]
        try:
            self._write_all(data)
        except OSError as e:
            raise StorageError(f"Failed to remove {key}: {e}")
        logger.debug("storage_removed", key=key)
        return True

    async def list_keys(self) -> list[str]:
        return list(self._read_all().keys())


class InMemoryStorage(KeyValueStorageInterface):
    """
    Dict-backed storage.

    Values are JSON round-tripped on the way in and out so callers see
    the same copy semantics as the file store.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get_item(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def save_item(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to save {key}: {e}")
        return True

    async def remove_item(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def list_keys(self) -> list[str]:
        return list(self._data.keys())
