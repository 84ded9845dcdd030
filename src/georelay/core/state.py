"""
Persisted key-value state.

A small JSON-backed store for values that must survive restarts: the cached
relay directory snapshot and its last-fetch timestamp. Each key holds one
JSON-serializable value. Writes replace the whole file atomically
(write to a sibling temp file, then ``os.replace``).

A store created without a path keeps everything in memory, which is what
the tests and one-shot runs use.

See Also:
    [RelayDirectory][georelay.services.directory.service.RelayDirectory]:
        Reads the cache on load and writes it after a successful refresh.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .exceptions import StateStoreError
from .logger import Logger


logger = Logger("georelay.state")


class StateStore:
    """JSON file key-value store.

    Args:
        path: File to persist to, or None for an in-memory store. A missing
            file is treated as empty; an unreadable or corrupt file is logged
            and ignored (it is overwritten on the next write).
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._data: dict[str, Any] = self._read()

    @property
    def path(self) -> Path | None:
        return self._path

    def _read(self) -> dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("state_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("state_unreadable", path=str(self._path), error="not a JSON object")
            return {}
        return data

    def _flush(self) -> None:
        if self._path is None:
            return
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._data), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as e:
            raise StateStoreError(f"cannot write state file {self._path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and persist.

        Raises:
            TypeError: If ``value`` is not JSON-serializable.
            StateStoreError: If the file cannot be written.
        """
        json.dumps(value)
        self._data[key] = value
        self._flush()

    def update(self, values: dict[str, Any]) -> None:
        """Store several keys with a single write."""
        json.dumps(values)
        self._data.update(values)
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def __contains__(self, key: object) -> bool:
        return key in self._data
