"""Durable key/value stores for the offline queue."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from tracking import t

from reservations.errors import StorageCapacityError
from reservations.interfaces import DurableStore


def _encode(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


class JsonFileStore(DurableStore):
    """One JSON file per key inside ``directory``.

    ``max_bytes`` caps the combined size of every file in the directory.
    """

    def __init__(self, directory: str, *, max_bytes: Optional[int] = None, logger: Any = None) -> None:
        t('reservations.queue.stores.JsonFileStore.__init__')
        self._directory = Path(directory)
        self.max_bytes = max_bytes
        self._logger = logger or logging.getLogger('JsonFileStore')

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        """Load the value for ``key``, returning None when missing or unreadable."""

        t('reservations.queue.stores.JsonFileStore.get')
        path = self._path_for(key)
        if not path.exists():
            self._logger.debug("Store file %s does not exist; starting empty", path)
            return None
        try:
            with path.open('r', encoding='utf-8') as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            self._logger.error("Failed to load %s: %s", path, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        """Write ``value`` for ``key``, raising ``StorageCapacityError`` over quota."""

        t('reservations.queue.stores.JsonFileStore.set')
        encoded = _encode(value)
        path = self._path_for(key)

        if self.max_bytes is not None:
            used = sum(
                other.stat().st_size
                for other in self._directory.glob('*.json')
                if other != path
            ) if self._directory.exists() else 0
            size = len(encoded.encode('utf-8'))
            if used + size > self.max_bytes:
                raise StorageCapacityError(
                    f"Writing {size} bytes to {path} exceeds the {self.max_bytes} byte quota"
                )

        self._directory.mkdir(parents=True, exist_ok=True)
        with path.open('w', encoding='utf-8') as handle:
            handle.write(encoded)
        self._logger.debug("Saved %s", path)


class MemoryStore(DurableStore):
    """In-process store; values are kept JSON-encoded so quotas behave like files."""

    def __init__(self, *, max_bytes: Optional[int] = None) -> None:
        t('reservations.queue.stores.MemoryStore.__init__')
        self.max_bytes = max_bytes
        self._data: Dict[str, str] = {}
        self.writes = 0

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        t('reservations.queue.stores.MemoryStore.set')
        encoded = _encode(value)
        if self.max_bytes is not None:
            used = sum(len(raw) for other, raw in self._data.items() if other != key)
            if used + len(encoded) > self.max_bytes:
                raise StorageCapacityError(f"Memory store quota of {self.max_bytes} bytes exceeded")
        self._data[key] = encoded
        self.writes += 1
