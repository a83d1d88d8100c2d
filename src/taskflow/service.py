"""Request-level operations behind every tool call.

Each public method reloads the store, applies one change, saves, and returns a
result dict whose ``status`` tag tells the caller what happened. Rejected
operations come back as ``{"status": "error", "message": ...}``; only
persistence failures raise.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from taskflow import log
from taskflow import render
from taskflow.config import EXPORT_FORMATS
from taskflow.errors import DomainError, NotFoundError, PersistenceError, SubtasksPendingError
from taskflow.io_utils import write_text
from taskflow.state_machine import NextKind, Outcome, RequestMachine, SubtaskSpec, TaskSpec
from taskflow.store import Store
from taskflow.tasks.model import Dependency, Note, Request, Subtask, Task, utc_now_iso

Result = dict[str, Any]
F = TypeVar("F", bound=Callable[..., Result])


def _error(message: str) -> Result:
    return {"status": "error", "message": message}


def returns_errors(fn: F) -> F:
    """Turn domain rejections raised by *fn* into ``error`` results."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Result:
        try:
            return fn(*args, **kwargs)
        except SubtasksPendingError as exc:
            return {
                "status": "subtasks_pending",
                "message": str(exc),
                "pendingSubtasks": [{"id": sid, "title": title} for sid, title in exc.pending],
            }
        except DomainError as exc:
            log.debug(f"{fn.__name__} rejected: {exc}")
            return _error(str(exc))

    return wrapper  # type: ignore[return-value]


def _subtask_view(sub: Subtask) -> Result:
    return {"id": sub.id, "title": sub.title, "description": sub.description, "done": sub.done}


def _task_view(task: Task) -> Result:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "done": task.done,
        "approved": task.approved,
        "completedDetails": task.completed_details,
        "subtasks": [_subtask_view(s) for s in task.subtasks],
    }


class TaskFlowService:
    """Request aggregate operations over one durable store."""

    def __init__(self, store: Store | str | Path) -> None:
        self.store = store if isinstance(store, Store) else Store(store)

    # ── helpers ──────────────────────────────────────────────────

    def _request(self, request_id: str) -> Request:
        req = self.store.data.get_request(request_id)
        if req is None:
            raise NotFoundError("request", request_id)
        return req

    def _machine(self, request_id: str) -> RequestMachine:
        return RequestMachine(self._request(request_id), self.store.ids)

    def _with_progress(self, message: str, request: Request) -> str:
        return f"{message}\n{render.progress_table(request)}"

    # ── planning ─────────────────────────────────────────────────

    def plan(
        self,
        original_request: str,
        tasks: list[TaskSpec],
        split_details: str | None = None,
        output_path: str | None = None,
        dependencies: list[Dependency] | None = None,
        notes: list[tuple[str, str]] | None = None,
    ) -> Result:
        self.store.load()
        ids = self.store.ids
        request_id = ids.next_request_id()
        req = Request(
            request_id=request_id,
            original_request=original_request,
            split_details=split_details or original_request,
            dependencies=list(dependencies) if dependencies is not None else None,
        )
        RequestMachine(req, ids).add_tasks(tasks)

        req.notes = []
        for title, content in notes or []:
            now = utc_now_iso()
            req.notes.append(
                Note(id=ids.next_note_id(), title=title, content=content, created_at=now, updated_at=now)
            )

        self.store.data.requests.append(req)
        self.store.save()
        log.debug(f"Planned {request_id} with {len(req.tasks)} task(s)")

        if output_path:
            self._write_report(output_path, render.plan_markdown(req))

        result: Result = {
            "status": "planned",
            "requestId": request_id,
            "totalTasks": len(req.tasks),
            "tasks": [t.summary() for t in req.tasks],
            "message": self._with_progress(
                "Tasks have been successfully added. Please use 'get_next_task' to retrieve the first task.",
                req,
            ),
        }
        if output_path:
            result["outputPath"] = output_path
        return result

    # ── progression ──────────────────────────────────────────────

    @returns_errors
    def get_next_task(self, request_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        nxt = machine.select_next()
        req = machine.request
        match nxt.kind:
            case NextKind.ALREADY_COMPLETED:
                return {"status": "already_completed", "message": "Request already completed."}
            case NextKind.NO_NEXT_TASK:
                return {"status": "no_next_task", "message": "No undone tasks found."}
            case NextKind.ALL_TASKS_DONE:
                return {
                    "status": "all_tasks_done",
                    "message": self._with_progress(
                        "All tasks have been completed. Awaiting completion approval.", req
                    ),
                }
        assert nxt.task is not None
        return {
            "status": "next_task",
            "task": nxt.task.summary(),
            "message": self._with_progress(
                "Next task is ready. Task approval will be required after completion.", req
            ),
        }

    @returns_errors
    def mark_task_done(
        self, request_id: str, task_id: str, completed_details: str | None = None
    ) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        if machine.mark_done(task_id, completed_details) is Outcome.ALREADY_DONE:
            return {"status": "already_done", "message": "Task is already marked done."}
        self.store.save()
        task = machine.task(task_id)
        return {
            "status": "task_marked_done",
            "requestId": request_id,
            "task": _task_view(task),
            "message": self._with_progress(
                f"Task {task_id} has been marked as done. "
                "Wait for the user to approve it before requesting the next task.",
                machine.request,
            ),
        }

    @returns_errors
    def approve_task_completion(self, request_id: str, task_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        if machine.approve_task(task_id) is Outcome.ALREADY_APPROVED:
            return {"status": "already_approved", "message": f"Task {task_id} is already approved."}
        self.store.save()
        return {
            "status": "task_approved",
            "requestId": request_id,
            "task": _task_view(machine.task(task_id)),
            "message": self._with_progress(f"Task {task_id} has been approved.", machine.request),
        }

    @returns_errors
    def approve_request_completion(self, request_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        machine.approve_completion()
        self.store.save()
        return {
            "status": "request_approved",
            "requestId": request_id,
            "message": self._with_progress(
                f"Request {request_id} has been approved and marked as completed.", machine.request
            ),
        }

    # ── read-only views ──────────────────────────────────────────

    def open_task_details(self, task_id: str) -> Result:
        self.store.load()
        requests = self.store.data.requests
        for req in requests:
            task = req.get_task(task_id)
            if task is not None:
                return {
                    "status": "task_details",
                    "requestId": req.request_id,
                    "originalRequest": req.original_request,
                    "splitDetails": req.split_details,
                    "completed": req.completed,
                    "task": _task_view(task),
                }
        for req in requests:
            for task in req.tasks:
                sub = task.get_subtask(task_id)
                if sub is not None:
                    return {
                        "status": "subtask_details",
                        "requestId": req.request_id,
                        "taskId": task.id,
                        "subtask": _subtask_view(sub),
                        "parentTask": {"id": task.id, "title": task.title},
                    }
        return {"status": "task_not_found", "message": "No such task or subtask found"}

    def list_requests(self) -> Result:
        self.store.load()
        requests = self.store.data.requests
        return {
            "status": "requests_listed",
            "message": f"Current requests in the system:\n{render.requests_table(requests)}",
            "requests": [
                {
                    "requestId": req.request_id,
                    "originalRequest": req.original_request,
                    "totalTasks": len(req.tasks),
                    "completedTasks": req.count_done(),
                    "approvedTasks": req.count_approved(),
                }
                for req in requests
            ],
        }

    # ── task set ─────────────────────────────────────────────────

    @returns_errors
    def add_tasks_to_request(self, request_id: str, tasks: list[TaskSpec]) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        new_tasks = machine.add_tasks(tasks)
        self.store.save()
        return {
            "status": "tasks_added",
            "message": self._with_progress(
                f"Added {len(new_tasks)} new tasks to request.", machine.request
            ),
            "newTasks": [t.summary() for t in new_tasks],
        }

    @returns_errors
    def update_task(
        self,
        request_id: str,
        task_id: str,
        title: str | None = None,
        description: str | None = None,
    ) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        task = machine.update_task(task_id, title=title, description=description)
        self.store.save()
        return {
            "status": "task_updated",
            "message": self._with_progress(f"Task {task_id} has been updated.", machine.request),
            "task": task.summary(),
        }

    @returns_errors
    def delete_task(self, request_id: str, task_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        machine.delete_task(task_id)
        self.store.save()
        return {
            "status": "task_deleted",
            "message": self._with_progress(f"Task {task_id} has been deleted.", machine.request),
        }

    # ── subtask set ──────────────────────────────────────────────

    @returns_errors
    def add_subtasks(self, request_id: str, task_id: str, subtasks: list[SubtaskSpec]) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        new_subtasks = machine.add_subtasks(task_id, subtasks)
        self.store.save()
        return {
            "status": "subtasks_added",
            "message": self._with_progress(
                f"Added {len(new_subtasks)} new subtasks to task {task_id}.", machine.request
            ),
            "newSubtasks": [
                {"id": s.id, "title": s.title, "description": s.description} for s in new_subtasks
            ],
        }

    @returns_errors
    def mark_subtask_done(self, request_id: str, task_id: str, subtask_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        result = machine.mark_subtask_done(task_id, subtask_id)
        if result.outcome is Outcome.ALREADY_DONE:
            return {"status": "already_done", "message": "Subtask is already marked done"}
        self.store.save()
        message = f"Subtask {subtask_id} has been marked as done."
        if result.all_subtasks_done:
            message += f" All subtasks of {task_id} are done; the task can now be marked done."
        return {
            "status": "subtask_marked_done",
            "message": self._with_progress(message, machine.request),
            "subtask": _subtask_view(result.subtask),
            "allSubtasksDone": result.all_subtasks_done,
        }

    @returns_errors
    def update_subtask(
        self,
        request_id: str,
        task_id: str,
        subtask_id: str,
        title: str | None = None,
        description: str | None = None,
    ) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        sub = machine.update_subtask(task_id, subtask_id, title=title, description=description)
        self.store.save()
        return {
            "status": "subtask_updated",
            "message": self._with_progress(f"Subtask {subtask_id} has been updated.", machine.request),
            "subtask": _subtask_view(sub),
        }

    @returns_errors
    def delete_subtask(self, request_id: str, task_id: str, subtask_id: str) -> Result:
        self.store.load()
        machine = self._machine(request_id)
        machine.delete_subtask(task_id, subtask_id)
        self.store.save()
        return {
            "status": "subtask_deleted",
            "message": self._with_progress(f"Subtask {subtask_id} has been deleted.", machine.request),
        }

    # ── notes ────────────────────────────────────────────────────

    def _note(self, req: Request, note_id: str) -> Note:
        note = req.get_note(note_id)
        if note is None:
            raise NotFoundError("note", note_id)
        return note

    @returns_errors
    def add_note(self, request_id: str, title: str, content: str) -> Result:
        self.store.load()
        req = self._request(request_id)
        now = utc_now_iso()
        note = Note(id=self.store.ids.next_note_id(), title=title, content=content, created_at=now, updated_at=now)
        if req.notes is None:
            req.notes = []
        req.notes.append(note)
        self.store.save()
        return {
            "status": "note_added",
            "message": f'Note "{title}" has been added to request {request_id}.',
            "note": note.to_dict(),
        }

    @returns_errors
    def update_note(
        self,
        request_id: str,
        note_id: str,
        title: str | None = None,
        content: str | None = None,
    ) -> Result:
        self.store.load()
        note = self._note(self._request(request_id), note_id)
        if title is not None:
            note.title = title
        if content is not None:
            note.content = content
        note.updated_at = utc_now_iso()
        self.store.save()
        return {
            "status": "note_updated",
            "message": f"Note {note_id} has been updated.",
            "note": note.to_dict(),
        }

    @returns_errors
    def delete_note(self, request_id: str, note_id: str) -> Result:
        self.store.load()
        req = self._request(request_id)
        note = self._note(req, note_id)
        req.notes = [n for n in req.notes or [] if n is not note]
        self.store.save()
        return {"status": "note_deleted", "message": f"Note {note_id} has been deleted."}

    # ── dependencies ─────────────────────────────────────────────

    @returns_errors
    def add_dependency(
        self, request_id: str, dependency: Dependency, task_id: str | None = None
    ) -> Result:
        self.store.load()
        req = self._request(request_id)
        if task_id:
            task = RequestMachine(req).task(task_id)
            if task.dependencies is None:
                task.dependencies = []
            task.dependencies.append(dependency)
            self.store.save()
            return {
                "status": "dependency_added_to_task",
                "message": f'Dependency "{dependency.name}" has been added to task {task_id}.',
                "dependency": dependency.to_dict(),
            }

        if req.dependencies is None:
            req.dependencies = []
        req.dependencies.append(dependency)
        self.store.save()
        return {
            "status": "dependency_added_to_request",
            "message": f'Dependency "{dependency.name}" has been added to request {request_id}.',
            "dependency": dependency.to_dict(),
        }

    # ── export ───────────────────────────────────────────────────

    def _write_report(self, output_path: str, content: str) -> None:
        target = Path(output_path).expanduser()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            write_text(target, content)
        except OSError as exc:
            log.error(f"Error writing to file {target}: {exc}")
            raise PersistenceError(f"Failed to write to file: {exc}") from exc
        log.debug(f"Wrote {target}")

    @returns_errors
    def export_task_status(
        self, request_id: str, output_path: str, format: str = "markdown"
    ) -> Result:
        if format not in EXPORT_FORMATS:
            return _error(f"Unsupported format: {format}")
        self.store.load()
        req = self._request(request_id)
        self._write_report(output_path, render.render_status(req, format))
        return {
            "status": "task_status_exported",
            "message": f"Task status has been exported to {output_path} in {format} format.",
            "outputPath": output_path,
            "format": format,
        }
