"""Identifier allocation for requests, tasks, subtasks and notes.

Requests use their own counter (``req-<n>``). Tasks, subtasks and notes share
one counter, so ``task-3``, ``subtask-4`` and ``note-5`` never collide
numerically even though their prefixes differ.

Counters are never authoritative in memory: they are rebuilt from the store
contents on every load, so ids stay unique when the file was edited by hand
or appended to by another process.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from taskflow.tasks.model import Request

REQUEST_PREFIX = "req-"
TASK_PREFIX = "task-"
SUBTASK_PREFIX = "subtask-"
NOTE_PREFIX = "note-"


@dataclass(frozen=True)
class Counters:
    request: int = 0
    task: int = 0

    def merge(self, other: Counters) -> Counters:
        return Counters(
            request=max(self.request, other.request),
            task=max(self.task, other.task),
        )


def parse_suffix(identifier: str, prefix: str) -> int | None:
    """Return the integer after *prefix*, or ``None`` if it is not numeric."""
    if not identifier.startswith(prefix):
        return None
    tail = identifier[len(prefix):]
    if not (tail.isascii() and tail.isdigit()):
        return None
    return int(tail)


def _task_family_ids(requests: Iterable[Request]) -> Iterator[tuple[str, str]]:
    for req in requests:
        for task in req.tasks:
            yield task.id, TASK_PREFIX
            for sub in task.subtasks:
                yield sub.id, SUBTASK_PREFIX
        for note in req.notes or []:
            yield note.id, NOTE_PREFIX


def scan_counters(requests: Iterable[Request]) -> Counters:
    """Highest numeric suffix per namespace (0 if none). Malformed ids are skipped."""
    requests = list(requests)
    req_max = 0
    for req in requests:
        n = parse_suffix(req.request_id, REQUEST_PREFIX)
        if n is not None:
            req_max = max(req_max, n)

    task_max = 0
    for identifier, prefix in _task_family_ids(requests):
        n = parse_suffix(identifier, prefix)
        if n is not None:
            task_max = max(task_max, n)

    return Counters(request=req_max, task=task_max)


class IdAllocator:
    """Hands out fresh ids, starting above the counters it was built from."""

    def __init__(self, counters: Counters | None = None) -> None:
        counters = counters or Counters()
        self._request = counters.request
        self._task = counters.task

    @classmethod
    def from_requests(
        cls, requests: Iterable[Request], floor: Counters | None = None
    ) -> IdAllocator:
        counters = scan_counters(requests)
        if floor is not None:
            counters = counters.merge(floor)
        return cls(counters)

    @property
    def counters(self) -> Counters:
        return Counters(request=self._request, task=self._task)

    def next_request_id(self) -> str:
        self._request += 1
        return f"{REQUEST_PREFIX}{self._request}"

    def _next_task_number(self) -> int:
        self._task += 1
        return self._task

    def next_task_id(self) -> str:
        return f"{TASK_PREFIX}{self._next_task_number()}"

    def next_subtask_id(self) -> str:
        return f"{SUBTASK_PREFIX}{self._next_task_number()}"

    def next_note_id(self) -> str:
        return f"{NOTE_PREFIX}{self._next_task_number()}"
