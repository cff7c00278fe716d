"""Local key-value persistence for saved keywords."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, List, Protocol

from .models import KeywordRecord, RecordValidationError
from .observability import MetricsRecorder

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised by key-value stores when a read or write cannot be completed."""


class KeyValueStore(Protocol):
    """String key-value store supplied by the host environment."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store; contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """File-backed store holding every key in a single JSON object.

    Mirrors the browser ``localStorage`` contract: keys and values are strings.
    Writes go through a temporary file that replaces the original.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        with self._lock:
            data = self._read()
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise PersistenceError(f"Stored value for {key!r} is not a string")
        return value

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Unable to read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{self._path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".kv-", suffix=".json", dir=self._path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Unable to write {self._path}: {exc}") from exc


class PersistentStore:
    """Best-effort JSON adapter over a :class:`KeyValueStore`.

    Neither ``load`` nor ``save`` raises; failures are logged and counted.
    """

    def __init__(self, backend: KeyValueStore, *, metrics: MetricsRecorder | None = None) -> None:
        self._backend = backend
        self._metrics = metrics

    def load(self, key: str) -> Any | None:
        try:
            raw = self._backend.get(key)
        except Exception:
            logger.exception("storage.load.failed key=%s", key)
            self._record_error("load", key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("storage.load.decode_failed key=%s chars=%s", key, len(raw or ""))
            self._record_error("decode", key)
            return None

    def save(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
            self._backend.set(key, encoded)
        except Exception:
            logger.exception("storage.save.failed key=%s", key)
            self._record_error("save", key)
            return
        logger.debug("storage.save.ok key=%s chars=%s", key, len(encoded))

    def _record_error(self, operation: str, key: str) -> None:
        if self._metrics:
            self._metrics.increment("storage.errors", operation=operation, key=key)


class SavedKeywordRepository:
    """Reads and writes the saved keyword collection under a single key."""

    def __init__(self, store: PersistentStore, *, key: str) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load_all(self) -> List[KeywordRecord]:
        payload = self._store.load(self._key)
        if payload is None:
            return []
        if not isinstance(payload, list):
            logger.warning("storage.saved.unexpected_shape key=%s type=%s", self._key, type(payload).__name__)
            return []

        records: list[KeywordRecord] = []
        seen: set[str] = set()
        for index, item in enumerate(payload):
            if not isinstance(item, dict) or not item.get("id"):
                logger.warning("storage.saved.entry_skipped key=%s index=%s reason=missing-id", self._key, index)
                continue
            try:
                record = KeywordRecord.from_payload(item)
            except RecordValidationError as exc:
                logger.warning("storage.saved.entry_skipped key=%s index=%s reason=%s", self._key, index, exc)
                continue
            if record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)
        logger.info("storage.saved.loaded key=%s count=%s", self._key, len(records))
        return records

    def save_all(self, records: Iterable[KeywordRecord]) -> None:
        self._store.save(self._key, [record.to_payload() for record in records])


__all__ = [
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PersistenceError",
    "PersistentStore",
    "SavedKeywordRepository",
]
