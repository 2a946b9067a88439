# checkout/services/queue_storage.py

"""
DURABLE QUEUE STORAGE

A keyed, JSON-serializable list that survives process restarts.

Capability:
- load()     -> list
- save(list)
- mutate(fn) -> single atomic read-modify-write of the whole collection

Unreadable or non-list data loads as [] (logged), so a corrupt store never
blocks checkout.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable

from django.conf import settings
from django.db import transaction

from checkout.models import StoredCollection

logger = logging.getLogger(__name__)

Mutation = Callable[[list], list]


class QueueStorage:
    def load(self) -> list:
        raise NotImplementedError

    def save(self, items: list) -> None:
        raise NotImplementedError

    def mutate(self, fn: Mutation) -> list:
        raise NotImplementedError


def _as_list(data, *, source: str) -> list:
    if isinstance(data, list):
        return list(data)
    if data not in (None, ""):
        logger.error(
            "Stored queue data is not a list; treating as empty",
            extra={"source": source, "type": type(data).__name__},
        )
    return []


class DatabaseQueueStorage(QueueStorage):
    """One StoredCollection row per key, locked for every mutation."""

    def __init__(self, key: str):
        self.key = key

    def load(self) -> list:
        row = StoredCollection.objects.filter(key=self.key).only("data").first()
        if row is None:
            return []
        return _as_list(row.data, source=self.key)

    def save(self, items: list) -> None:
        self.mutate(lambda _current: list(items))

    @transaction.atomic
    def mutate(self, fn: Mutation) -> list:
        StoredCollection.objects.get_or_create(key=self.key, defaults={"data": []})
        row = StoredCollection.objects.select_for_update().get(key=self.key)

        updated = list(fn(_as_list(row.data, source=self.key)))
        row.data = updated
        row.save(update_fields=["data", "updated_at"])
        return updated


class FileQueueStorage(QueueStorage):
    """JSON file replaced atomically (temp file + os.replace)."""

    _locks: dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        with self._locks_guard:
            self._lock = self._locks.setdefault(str(self.path.resolve()), threading.Lock())

    def _read(self) -> list:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.error("Could not read queue file", extra={"path": str(self.path), "error": str(exc)})
            return []

        try:
            data = json.loads(raw) if raw.strip() else []
        except ValueError:
            logger.error("Queue file is not valid JSON; treating as empty", extra={"path": str(self.path)})
            return []
        return _as_list(data, source=str(self.path))

    def _write(self, items: list) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(items, fh, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self) -> list:
        with self._lock:
            return self._read()

    def save(self, items: list) -> None:
        with self._lock:
            self._write(list(items))

    def mutate(self, fn: Mutation) -> list:
        with self._lock:
            updated = list(fn(self._read()))
            self._write(updated)
            return updated


class InMemoryQueueStorage(QueueStorage):
    """Process-local storage, used by tests."""

    def __init__(self, items: list | None = None):
        self._items = list(items or [])
        self._lock = threading.Lock()

    def load(self) -> list:
        with self._lock:
            return json.loads(json.dumps(self._items))

    def save(self, items: list) -> None:
        with self._lock:
            self._items = json.loads(json.dumps(list(items)))

    def mutate(self, fn: Mutation) -> list:
        with self._lock:
            current = json.loads(json.dumps(self._items))
            self._items = json.loads(json.dumps(list(fn(current))))
            return json.loads(json.dumps(self._items))


def storage_from_settings() -> QueueStorage:
    backend = (settings.POS_PENDING_QUEUE_BACKEND or "database").strip().lower()
    if backend == "file":
        return FileQueueStorage(settings.POS_PENDING_QUEUE_FILE)
    if backend == "database":
        return DatabaseQueueStorage(settings.POS_PENDING_QUEUE_KEY)
    raise ValueError(f"Unknown POS_PENDING_QUEUE_BACKEND: {backend}")
