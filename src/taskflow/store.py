"""File-backed store holding every request, task, subtask and note."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

from taskflow import log
from taskflow.errors import PersistenceError, ReadOnlyStoreError, is_read_only_error
from taskflow.io_utils import atomic_write_text, read_text
from taskflow.tasks.ids import Counters, IdAllocator
from taskflow.tasks.model import TaskFlowFile


class LoadStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    UNREADABLE = "unreadable"
    INVALID = "invalid"


class Store:
    """In-memory universe of requests mirrored to one JSON file.

    Usage::

        store = Store(path)
        store.load()                  # always before mutating
        req = store.data.get_request("req-1")
        ...                           # mutate through the state machine
        store.save()                  # always right after

    A file that is missing, unreadable or not a valid document loads as an
    empty store. ``load_status`` tells which case happened.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.data = TaskFlowFile()
        self.load_status = LoadStatus.MISSING
        self.ids = IdAllocator()
        self._high_water = Counters()

    def load(self) -> TaskFlowFile:
        # Remember what this process already handed out before rebuilding.
        self._high_water = self._high_water.merge(self.ids.counters)
        self.data, self.load_status = self._read()
        self.ids = IdAllocator.from_requests(self.data.requests, floor=self._high_water)
        return self.data

    def _read(self) -> tuple[TaskFlowFile, LoadStatus]:
        if not self.path.is_file():
            log.debug(f"No task file at {self.path}; starting with an empty store")
            return TaskFlowFile(), LoadStatus.MISSING

        try:
            raw = read_text(self.path)
        except (OSError, UnicodeDecodeError) as exc:
            log.warn(f"Could not read {self.path} ({exc}); starting with an empty store")
            return TaskFlowFile(), LoadStatus.UNREADABLE

        try:
            data = TaskFlowFile.from_dict(json.loads(raw))
        except (json.JSONDecodeError, ValueError, TypeError, AttributeError, KeyError) as exc:
            log.warn(f"Invalid task file {self.path} ({exc}); starting with an empty store")
            return TaskFlowFile(), LoadStatus.INVALID

        log.debug(f"Loaded {len(data.requests)} request(s) from {self.path}")
        return data, LoadStatus.OK

    def save(self) -> None:
        text = json.dumps(self.data.to_dict(), indent=2, ensure_ascii=False)
        try:
            atomic_write_text(self.path, text)
        except OSError as exc:
            if is_read_only_error(exc):
                log.error(f"EROFS: read-only file system. Cannot save tasks to {self.path}.")
                raise ReadOnlyStoreError(f"Read-only file system: {self.path}") from exc
            raise PersistenceError(f"Failed to save tasks to {self.path}: {exc}") from exc
        log.debug(f"Saved {len(self.data.requests)} request(s) to {self.path}")
