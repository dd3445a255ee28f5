# kiosk_dispatch/infra/json_store.py
"""
Record stores backing the call log and the push-token list.

``JsonFileStore`` keeps a JSON array on disk.  Writes go to a temporary
file in the same directory and are moved into place with ``os.replace``,
so a concurrent reader sees either the old or the new array, never a
partial one.  Last write wins.
"""
from __future__ import annotations

import json
import os
import tempfile
from copy import deepcopy
from pathlib import Path
from threading import Lock
from typing import Any

from kiosk_dispatch.core.errors import StorageError
from kiosk_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


class JsonFileStore:
    def __init__(self, path: str | Path, name: str | None = None) -> None:
        self._path = Path(path)
        self.name = name or self._path.stem

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> list[Any]:
        if not self._path.exists():
            return []
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"cannot read {self._path}: {exc}") from exc

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"corrupt JSON in {self._path}: {exc}") from exc

        if not isinstance(data, list):
            raise StorageError(f"expected a JSON array in {self._path}, got {type(data).__name__}")
        return data

    def write(self, records: list[Any]) -> None:
        directory = self._path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"cannot write {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug(f"Temporary file already gone: {tmp_name}")


class InMemoryStore:
    """Process-local store; contents are lost on restart."""

    def __init__(self, name: str = "memory", records: list[Any] | None = None) -> None:
        self.name = name
        self._records: list[Any] = deepcopy(records) if records else []
        self._lock = Lock()

    def read(self) -> list[Any]:
        with self._lock:
            return deepcopy(self._records)

    def write(self, records: list[Any]) -> None:
        with self._lock:
            self._records = deepcopy(records)


def build_store(backend: str, path: str, name: str) -> JsonFileStore | InMemoryStore:
    if backend == "memory":
        return InMemoryStore(name=name)
    return JsonFileStore(path, name=name)
