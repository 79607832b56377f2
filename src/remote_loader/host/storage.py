from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from remote_loader.host.interfaces import KeyValueStore

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Key/value store persisted as a single JSON object on disk.

    The file is read once on first access and rewritten atomically on every write,
    so values survive process restarts. There is no cross-process locking.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._data: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        self._data = {}
        if not self._path.exists():
            return self._data
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except Exception:
            logger.exception("Failed to read state file, starting fresh. path=%s", self._path)
            return self._data
        if not isinstance(payload, dict):
            logger.warning("State file is not a JSON object, starting fresh. path=%s", self._path)
            return self._data
        self._data = payload
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        atomic_write_json(self._path, data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            atomic_write_json(self._path, data)


class InMemoryKeyValueStore(KeyValueStore):
    """Non-persistent store for embedding and tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
