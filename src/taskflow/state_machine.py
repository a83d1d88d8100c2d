"""Task and subtask lifecycle rules with approval-gated progression."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from taskflow import log
from taskflow.errors import (
    CompletedError,
    ImmutableError,
    NotDoneError,
    NotFoundError,
    SubtasksPendingError,
)
from taskflow.tasks.ids import IdAllocator
from taskflow.tasks.model import Dependency, Request, Subtask, Task


class TaskState(str, Enum):
    PENDING = "pending"
    DONE_UNAPPROVED = "done_unapproved"
    DONE_APPROVED = "done_approved"


class SubtaskState(str, Enum):
    OPEN = "open"
    DONE = "done"


class Outcome(str, Enum):
    APPLIED = "applied"
    ALREADY_DONE = "already_done"
    ALREADY_APPROVED = "already_approved"


class NextKind(str, Enum):
    NEXT_TASK = "next_task"
    ALL_TASKS_DONE = "all_tasks_done"
    NO_NEXT_TASK = "no_next_task"
    ALREADY_COMPLETED = "already_completed"


@dataclass
class NextTask:
    kind: NextKind
    task: Task | None = None


@dataclass
class SubtaskDone:
    outcome: Outcome
    subtask: Subtask
    all_subtasks_done: bool


@dataclass
class SubtaskSpec:
    title: str
    description: str = ""


@dataclass
class TaskSpec:
    title: str
    description: str = ""
    subtasks: list[SubtaskSpec] | None = None
    dependencies: list[Dependency] | None = None


def task_state(task: Task) -> TaskState:
    if not task.done:
        return TaskState.PENDING
    if task.approved:
        return TaskState.DONE_APPROVED
    return TaskState.DONE_UNAPPROVED


def subtask_state(subtask: Subtask) -> SubtaskState:
    return SubtaskState.DONE if subtask.done else SubtaskState.OPEN


def build_subtasks(specs: list[SubtaskSpec], ids: IdAllocator) -> list[Subtask]:
    return [
        Subtask(id=ids.next_subtask_id(), title=s.title, description=s.description)
        for s in specs
    ]


def build_task(spec: TaskSpec, ids: IdAllocator) -> Task:
    """Create a pending task; its id is allocated before its subtasks' ids."""
    task_id = ids.next_task_id()
    return Task(
        id=task_id,
        title=spec.title,
        description=spec.description,
        subtasks=build_subtasks(spec.subtasks or [], ids),
        dependencies=list(spec.dependencies) if spec.dependencies is not None else None,
    )


class RequestMachine:
    """Applies lifecycle transitions to the tasks of one request.

    Usage::

        machine = RequestMachine(request, store.ids)
        nxt = machine.select_next()            # first task with done=False
        machine.mark_subtask_done(tid, sid)    # open -> done
        machine.mark_done(tid, "details")      # pending -> done (unapproved)
        machine.approve_task(tid)              # done -> approved
        machine.approve_completion()           # request.completed = True

    Rejections raise ``DomainError`` subclasses before anything is changed.
    """

    def __init__(self, request: Request, ids: IdAllocator | None = None) -> None:
        self.request = request
        self._ids = ids or IdAllocator()

    # ── lookups ──────────────────────────────────────────────────

    def task(self, task_id: str) -> Task:
        task = self.request.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def subtask(self, task: Task, subtask_id: str) -> Subtask:
        sub = task.get_subtask(subtask_id)
        if sub is None:
            raise NotFoundError("subtask", subtask_id)
        return sub

    def state(self, task_id: str) -> TaskState:
        return task_state(self.task(task_id))

    # ── progression ──────────────────────────────────────────────

    def select_next(self) -> NextTask:
        """Return the first task that is not done. Never mutates."""
        if self.request.completed:
            return NextTask(NextKind.ALREADY_COMPLETED)
        if not self.request.tasks:
            return NextTask(NextKind.NO_NEXT_TASK)
        for task in self.request.tasks:
            if not task.done:
                return NextTask(NextKind.NEXT_TASK, task)
        return NextTask(NextKind.ALL_TASKS_DONE)

    def mark_done(self, task_id: str, details: str | None = None) -> Outcome:
        task = self.task(task_id)
        if task.done:
            return Outcome.ALREADY_DONE
        pending = task.pending_subtasks()
        if pending:
            raise SubtasksPendingError([(s.id, s.title) for s in pending])
        task.done = True
        task.completed_details = details or ""
        log.debug(f"Task {task_id}: pending -> done")
        return Outcome.APPLIED

    def mark_subtask_done(self, task_id: str, subtask_id: str) -> SubtaskDone:
        task = self.task(task_id)
        sub = self.subtask(task, subtask_id)
        if sub.done:
            return SubtaskDone(Outcome.ALREADY_DONE, sub, not task.pending_subtasks())
        sub.done = True
        log.debug(f"Subtask {subtask_id}: open -> done")
        return SubtaskDone(Outcome.APPLIED, sub, not task.pending_subtasks())

    def approve_task(self, task_id: str) -> Outcome:
        task = self.task(task_id)
        if not task.done:
            raise NotDoneError(f"Task {task_id} is not done yet and cannot be approved.")
        if task.approved:
            return Outcome.ALREADY_APPROVED
        task.approved = True
        log.debug(f"Task {task_id}: done -> approved")
        return Outcome.APPLIED

    def approve_completion(self) -> Outcome:
        if self.request.completed:
            raise CompletedError("Request is already completed.")
        blockers = [t.id for t in self.request.tasks if task_state(t) != TaskState.DONE_APPROVED]
        if blockers:
            raise NotDoneError(
                "Every task must be done and approved before the request can be completed.",
                pending=blockers,
            )
        self.request.completed = True
        log.debug(f"Request {self.request.request_id}: completed")
        return Outcome.APPLIED

    # ── task set ─────────────────────────────────────────────────

    def add_tasks(self, specs: list[TaskSpec]) -> list[Task]:
        if self.request.completed:
            raise CompletedError("Cannot add tasks to completed request")
        new_tasks = [build_task(spec, self._ids) for spec in specs]
        self.request.tasks.extend(new_tasks)
        return new_tasks

    def update_task(
        self, task_id: str, *, title: str | None = None, description: str | None = None
    ) -> Task:
        task = self.task(task_id)
        if task.done:
            raise ImmutableError("Cannot update completed task")
        if title is not None:
            task.title = title
        if description is not None:
            task.description = description
        return task

    def delete_task(self, task_id: str) -> Task:
        task = self.task(task_id)
        if task.done:
            raise ImmutableError("Cannot delete completed task")
        self.request.tasks[:] = [t for t in self.request.tasks if t is not task]
        return task

    # ── subtask set ──────────────────────────────────────────────

    def add_subtasks(self, task_id: str, specs: list[SubtaskSpec]) -> list[Subtask]:
        task = self.task(task_id)
        if task.done:
            raise ImmutableError("Cannot add subtasks to completed task")
        new_subtasks = build_subtasks(specs, self._ids)
        task.subtasks.extend(new_subtasks)
        return new_subtasks

    def update_subtask(
        self,
        task_id: str,
        subtask_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Subtask:
        task = self.task(task_id)
        sub = self.subtask(task, subtask_id)
        if sub.done:
            raise ImmutableError("Cannot update completed subtask")
        if title is not None:
            sub.title = title
        if description is not None:
            sub.description = description
        return sub

    def delete_subtask(self, task_id: str, subtask_id: str) -> Subtask:
        task = self.task(task_id)
        sub = self.subtask(task, subtask_id)
        if sub.done:
            raise ImmutableError("Cannot delete completed subtask")
        task.subtasks[:] = [s for s in task.subtasks if s is not sub]
        return sub
