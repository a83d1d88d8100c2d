"""Request, Task, Subtask, Note and Dependency data models.

Field names are snake_case in Python; ``to_dict`` / ``from_dict`` translate
to and from the camelCase keys of the persisted JSON document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from taskflow import log


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def _str(data: dict[str, Any], key: str, default: str | None = None) -> str:
    value = data.get(key)
    if value is None:
        value = default
    if not isinstance(value, str):
        raise ValueError(f"{key!r} must be a string")
    return value


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{key!r} must be a boolean")
    return value


def _list(data: dict[str, Any], key: str) -> list[Any] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"{key!r} must be a list")
    return value


@dataclass
class Dependency:
    name: str
    version: str | None = None
    url: str | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        for key in ("version", "url", "description"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        return cls(
            name=_str(data, "name"),
            version=data.get("version"),
            url=data.get("url"),
            description=data.get("description"),
        )


@dataclass
class Note:
    id: str
    title: str
    content: str
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Note:
        return cls(
            id=_str(data, "id"),
            title=_str(data, "title", ""),
            content=_str(data, "content", ""),
            created_at=_str(data, "createdAt", ""),
            updated_at=_str(data, "updatedAt", ""),
        )


@dataclass
class Subtask:
    id: str
    title: str
    description: str = ""
    done: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "done": self.done,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Subtask:
        return cls(
            id=_str(data, "id"),
            title=_str(data, "title", ""),
            description=_str(data, "description", ""),
            done=_bool(data, "done"),
        )


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    done: bool = False
    approved: bool = False
    completed_details: str = ""
    subtasks: list[Subtask] = field(default_factory=list)
    dependencies: list[Dependency] | None = None

    def get_subtask(self, subtask_id: str) -> Subtask | None:
        for s in self.subtasks:
            if s.id == subtask_id:
                return s
        return None

    def pending_subtasks(self) -> list[Subtask]:
        return [s for s in self.subtasks if not s.done]

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "description": self.description}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "done": self.done,
            "approved": self.approved,
            "completedDetails": self.completed_details,
            "subtasks": [s.to_dict() for s in self.subtasks],
        }
        if self.dependencies is not None:
            out["dependencies"] = [d.to_dict() for d in self.dependencies]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        deps = _list(data, "dependencies")
        return cls(
            id=_str(data, "id"),
            title=_str(data, "title", ""),
            description=_str(data, "description", ""),
            done=_bool(data, "done"),
            approved=_bool(data, "approved"),
            completed_details=_str(data, "completedDetails", ""),
            subtasks=[Subtask.from_dict(s) for s in _list(data, "subtasks") or []],
            dependencies=[Dependency.from_dict(d) for d in deps] if deps is not None else None,
        )


@dataclass
class Request:
    request_id: str
    original_request: str
    split_details: str = ""
    tasks: list[Task] = field(default_factory=list)
    completed: bool = False
    dependencies: list[Dependency] | None = None
    notes: list[Note] | None = None

    def get_task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def get_note(self, note_id: str) -> Note | None:
        for n in self.notes or []:
            if n.id == note_id:
                return n
        return None

    def pending_ids(self) -> list[str]:
        return [t.id for t in self.tasks if not t.done]

    def count_done(self) -> int:
        return sum(1 for t in self.tasks if t.done)

    def count_approved(self) -> int:
        return sum(1 for t in self.tasks if t.approved)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "requestId": self.request_id,
            "originalRequest": self.original_request,
            "splitDetails": self.split_details,
            "tasks": [t.to_dict() for t in self.tasks],
            "completed": self.completed,
        }
        if self.dependencies is not None:
            out["dependencies"] = [d.to_dict() for d in self.dependencies]
        if self.notes is not None:
            out["notes"] = [n.to_dict() for n in self.notes]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Request:
        deps = _list(data, "dependencies")
        notes = _list(data, "notes")
        return cls(
            request_id=_str(data, "requestId"),
            original_request=_str(data, "originalRequest", ""),
            split_details=_str(data, "splitDetails", ""),
            tasks=[Task.from_dict(t) for t in _list(data, "tasks") or []],
            completed=_bool(data, "completed"),
            dependencies=[Dependency.from_dict(d) for d in deps] if deps is not None else None,
            notes=[Note.from_dict(n) for n in notes] if notes is not None else None,
        )


@dataclass
class TaskFlowFile:
    requests: list[Request] = field(default_factory=list)

    def get_request(self, request_id: str) -> Request | None:
        for r in self.requests:
            if r.request_id == request_id:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"requests": [r.to_dict() for r in self.requests]}

    @classmethod
    def from_dict(cls, data: Any) -> TaskFlowFile:
        if not isinstance(data, dict):
            raise ValueError("store document must be an object")
        requests = data.get("requests")
        if not isinstance(requests, list):
            raise ValueError("'requests' must be a list")

        parsed: list[Request] = []
        for i, raw in enumerate(requests):
            try:
                if not isinstance(raw, dict):
                    raise ValueError("entry must be an object")
                parsed.append(Request.from_dict(raw))
            except (ValueError, TypeError, AttributeError) as exc:
                # One bad entry must not cost the rest of the file.
                label = raw.get("requestId", i) if isinstance(raw, dict) else i
                log.warn(f"Skipping malformed request {label}: {exc}")
        return cls(requests=parsed)
