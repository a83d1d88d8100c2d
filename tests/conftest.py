"""Shared fixtures for taskflow tests.

File handling in tests:
- Use tmp_path for the task file so tests are isolated and cleaned up.
- Use taskflow.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taskflow.io_utils import read_text
from taskflow.service import TaskFlowService
from taskflow.state_machine import SubtaskSpec, TaskSpec
from taskflow.store import Store
from taskflow.tasks.model import Request, Subtask, Task


@pytest.fixture(autouse=True)
def _isolate_task_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Never touch the real ~/Documents/tasks.json."""
    monkeypatch.setenv("TASK_MANAGER_FILE_PATH", str(tmp_path / "env-tasks.json"))


@pytest.fixture
def task_file(tmp_path: Path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture
def store(task_file: Path) -> Store:
    return Store(task_file)


@pytest.fixture
def service(store: Store) -> TaskFlowService:
    return TaskFlowService(store)


@pytest.fixture
def read_store_json(task_file: Path):
    """Return the persisted document as parsed JSON."""

    def _read() -> dict:
        return json.loads(read_text(task_file))

    return _read


def _spec(title: str, subtasks: list[str] | None = None) -> TaskSpec:
    return TaskSpec(
        title=title,
        description=f"{title} description",
        subtasks=[SubtaskSpec(title=s, description=f"{s} description") for s in subtasks or []],
    )


@pytest.fixture
def make_spec():
    """Factory fixture that creates TaskSpec instances."""
    return _spec


def _make_task(
    id: str,
    title: str = "",
    done: bool = False,
    approved: bool = False,
    subtasks: list[Subtask] | None = None,
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        description=f"Description of {id}",
        done=done,
        approved=approved,
        subtasks=subtasks or [],
    )


def _make_request(tasks: list[Task], request_id: str = "req-1", completed: bool = False) -> Request:
    return Request(
        request_id=request_id,
        original_request="Build the thing",
        split_details="Build the thing",
        tasks=tasks,
        completed=completed,
    )


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def make_request():
    """Factory fixture that creates Request instances."""
    return _make_request


@pytest.fixture
def planned(service: TaskFlowService):
    """Plan the two-task request used by most scenarios.

    task 1 has two subtasks, task 2 has none.
    """
    result = service.plan(
        "Add user authentication",
        [_spec("Login form", ["Markup", "Validation"]), _spec("Session handling")],
    )
    assert result["status"] == "planned"
    return result
