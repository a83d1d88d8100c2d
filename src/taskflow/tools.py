"""Tool surface: argument schemas, descriptions and dispatch to the service.

Argument models use the camelCase names callers send on the wire. Arguments
are validated before the store is touched; a bad payload raises
``ToolValidationError`` and nothing is loaded or written.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from taskflow.errors import ToolValidationError
from taskflow.service import Result, TaskFlowService
from taskflow.state_machine import SubtaskSpec, TaskSpec
from taskflow.tasks.model import Dependency


class _Args(BaseModel):
    model_config = ConfigDict(extra="forbid")


class DependencyArg(_Args):
    name: str
    version: str | None = None
    url: str | None = None
    description: str | None = None

    def to_model(self) -> Dependency:
        return Dependency(
            name=self.name, version=self.version, url=self.url, description=self.description
        )


class NoteArg(_Args):
    title: str
    content: str


class SubtaskArg(_Args):
    title: str
    description: str

    def to_spec(self) -> SubtaskSpec:
        return SubtaskSpec(title=self.title, description=self.description)


class TaskArg(_Args):
    title: str
    description: str
    subtasks: list[SubtaskArg] | None = None
    dependencies: list[DependencyArg] | None = None

    def to_spec(self) -> TaskSpec:
        return TaskSpec(
            title=self.title,
            description=self.description,
            subtasks=[s.to_spec() for s in self.subtasks or []],
            dependencies=_deps(self.dependencies),
        )


def _deps(items: list[DependencyArg] | None) -> list[Dependency] | None:
    if items is None:
        return None
    return [d.to_model() for d in items]


class PlanTaskArgs(_Args):
    originalRequest: str
    tasks: list[TaskArg]
    splitDetails: str | None = None
    outputPath: str | None = None
    dependencies: list[DependencyArg] | None = None
    notes: list[NoteArg] | None = None


class RequestIdArgs(_Args):
    requestId: str


class TaskRefArgs(_Args):
    requestId: str
    taskId: str


class SubtaskRefArgs(_Args):
    requestId: str
    taskId: str
    subtaskId: str


class MarkTaskDoneArgs(TaskRefArgs):
    completedDetails: str | None = None


class OpenTaskDetailsArgs(_Args):
    taskId: str


class ListRequestsArgs(_Args):
    pass


class AddTasksArgs(_Args):
    requestId: str
    tasks: list[TaskArg]


class UpdateTaskArgs(TaskRefArgs):
    title: str | None = None
    description: str | None = None


class AddSubtasksArgs(TaskRefArgs):
    subtasks: list[SubtaskArg]


class UpdateSubtaskArgs(SubtaskRefArgs):
    title: str | None = None
    description: str | None = None


class ExportTaskStatusArgs(_Args):
    requestId: str
    outputPath: str
    format: Literal["markdown", "json", "html"] = "markdown"


class AddNoteArgs(_Args):
    requestId: str
    title: str
    content: str


class NoteRefArgs(_Args):
    requestId: str
    noteId: str


class UpdateNoteArgs(NoteRefArgs):
    title: str | None = None
    content: str | None = None


class AddDependencyArgs(_Args):
    requestId: str
    dependency: DependencyArg
    taskId: str | None = None


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: type[_Args]
    handler: Callable[[TaskFlowService, Any], Result]

    def input_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema()


_PLAN_TASK_DOC = """\
Register a new user request and plan its tasks. Provide 'originalRequest' and \
'tasks', and optionally 'splitDetails'.

Tasks may carry subtasks, smaller units of work that make up the task. Every \
subtask must be done before its task can be marked done.

You can also include:
- 'dependencies': libraries, tools or services the project relies on
- 'notes': general notes about the project (preferences, guidelines, context)
- 'outputPath': where to write a Markdown copy of the plan. Prefer absolute paths.

Workflow:
1. Use 'plan_task' to register a request and its tasks.
2. After planning, you MUST use 'get_next_task' to retrieve the first task. A \
progress table is shown with each response.
3. Use 'get_next_task' to retrieve the next task that is not done.
4. If the task has subtasks, finish each one with 'mark_subtask_done' before \
marking the task done.
5. IMPORTANT: after 'mark_task_done' you MUST NOT proceed to another task \
without the user's approval. The user must explicitly approve the finished \
task with 'approve_task_completion'.
6. Once the task is approved, call 'get_next_task' again for the next one.
7. Repeat until every task is done and approved.
8. 'get_next_task' then reports 'all_tasks_done' and the request awaits \
approval of its completion.
9. The user approves the whole request with 'approve_request_completion'. If \
the user wants more work instead, add tasks with 'add_tasks_to_request' or \
start a new request with 'plan_task'.

Always wait for the user's approval after each task, and for request \
completion approval once all tasks are done. Do not proceed automatically."""

_GET_NEXT_TASK_DOC = """\
Given a 'requestId', return the next pending task (not done yet). A progress \
table showing every task is included with each response.

If the same task is returned again, or no new task is returned after a task \
was marked done, you MUST NOT proceed. Ask the user for approval before \
calling 'get_next_task' again. Do not skip the approval step.

In other words:
- After 'mark_task_done', do not call 'get_next_task' again until the user \
has approved the task with 'approve_task_completion'.
- 'all_tasks_done' means every task is finished. Confirm with the user and \
ask for 'approve_request_completion', or add more tasks."""

_MARK_TASK_DONE_DOC = """\
Mark a task as done after you have completed it. Provide 'requestId' and \
'taskId', and optionally 'completedDetails'. Every subtask must be done first.

A progress table with the updated status of all tasks is included in the \
response.

After this, DO NOT call 'get_next_task' again until the user has explicitly \
approved this task with 'approve_task_completion'."""

_TOOL_LIST: list[Tool] = [
    Tool(
        "plan_task",
        _PLAN_TASK_DOC,
        PlanTaskArgs,
        lambda svc, a: svc.plan(
            a.originalRequest,
            [t.to_spec() for t in a.tasks],
            split_details=a.splitDetails,
            output_path=a.outputPath,
            dependencies=_deps(a.dependencies),
            notes=[(n.title, n.content) for n in a.notes or []],
        ),
    ),
    Tool(
        "get_next_task",
        _GET_NEXT_TASK_DOC,
        RequestIdArgs,
        lambda svc, a: svc.get_next_task(a.requestId),
    ),
    Tool(
        "mark_task_done",
        _MARK_TASK_DONE_DOC,
        MarkTaskDoneArgs,
        lambda svc, a: svc.mark_task_done(a.requestId, a.taskId, a.completedDetails),
    ),
    Tool(
        "approve_task_completion",
        "Record the user's approval of a completed task. Fails if the task is not done.",
        TaskRefArgs,
        lambda svc, a: svc.approve_task_completion(a.requestId, a.taskId),
    ),
    Tool(
        "approve_request_completion",
        "Record the user's approval of the whole request. Every task must be done and approved.",
        RequestIdArgs,
        lambda svc, a: svc.approve_request_completion(a.requestId),
    ),
    Tool(
        "open_task_details",
        "Get details of a task or subtask by id.",
        OpenTaskDetailsArgs,
        lambda svc, a: svc.open_task_details(a.taskId),
    ),
    Tool(
        "list_requests",
        "List all requests with a summary of their tasks.",
        ListRequestsArgs,
        lambda svc, a: svc.list_requests(),
    ),
    Tool(
        "add_tasks_to_request",
        "Append new tasks (with optional subtasks and dependencies) to an existing request.",
        AddTasksArgs,
        lambda svc, a: svc.add_tasks_to_request(a.requestId, [t.to_spec() for t in a.tasks]),
    ),
    Tool(
        "update_task",
        "Update the title and/or description of a task that is not done yet.",
        UpdateTaskArgs,
        lambda svc, a: svc.update_task(a.requestId, a.taskId, a.title, a.description),
    ),
    Tool(
        "delete_task",
        "Delete a task that is not done yet.",
        TaskRefArgs,
        lambda svc, a: svc.delete_task(a.requestId, a.taskId),
    ),
    Tool(
        "add_subtasks",
        "Add subtasks to a task that is not done yet.",
        AddSubtasksArgs,
        lambda svc, a: svc.add_subtasks(a.requestId, a.taskId, [s.to_spec() for s in a.subtasks]),
    ),
    Tool(
        "mark_subtask_done",
        "Mark a subtask as done. All subtasks must be done before their task can be marked done.",
        SubtaskRefArgs,
        lambda svc, a: svc.mark_subtask_done(a.requestId, a.taskId, a.subtaskId),
    ),
    Tool(
        "update_subtask",
        "Update the title and/or description of a subtask that is not done yet.",
        UpdateSubtaskArgs,
        lambda svc, a: svc.update_subtask(a.requestId, a.taskId, a.subtaskId, a.title, a.description),
    ),
    Tool(
        "delete_subtask",
        "Delete a subtask that is not done yet.",
        SubtaskRefArgs,
        lambda svc, a: svc.delete_subtask(a.requestId, a.taskId, a.subtaskId),
    ),
    Tool(
        "export_task_status",
        "Export the status of a request to a markdown, json or html file.",
        ExportTaskStatusArgs,
        lambda svc, a: svc.export_task_status(a.requestId, a.outputPath, a.format),
    ),
    Tool(
        "add_note",
        "Add a note (preferences, guidelines, context) to a request.",
        AddNoteArgs,
        lambda svc, a: svc.add_note(a.requestId, a.title, a.content),
    ),
    Tool(
        "update_note",
        "Update the title and/or content of a note.",
        UpdateNoteArgs,
        lambda svc, a: svc.update_note(a.requestId, a.noteId, a.title, a.content),
    ),
    Tool(
        "delete_note",
        "Delete a note from a request.",
        NoteRefArgs,
        lambda svc, a: svc.delete_note(a.requestId, a.noteId),
    ),
    Tool(
        "add_dependency",
        "Add a dependency to a task when 'taskId' is given, otherwise to the request.",
        AddDependencyArgs,
        lambda svc, a: svc.add_dependency(a.requestId, a.dependency.to_model(), a.taskId),
    ),
]

TOOLS: dict[str, Tool] = {tool.name: tool for tool in _TOOL_LIST}


def tool_names() -> list[str]:
    return [tool.name for tool in _TOOL_LIST]


def get_tool(name: str) -> Tool:
    try:
        return TOOLS[name]
    except KeyError:
        raise ToolValidationError(f"Unknown tool: {name}") from None


def parse_arguments(name: str, arguments: dict[str, Any] | None) -> _Args:
    tool = get_tool(name)
    try:
        return tool.args_model.model_validate(arguments or {})
    except ValidationError as exc:
        raise ToolValidationError(f"Invalid arguments for {name}: {exc}") from exc


def call_tool(service: TaskFlowService, name: str, arguments: dict[str, Any] | None = None) -> Result:
    """Validate *arguments* for tool *name* and run it against *service*."""
    args = parse_arguments(name, arguments)
    return get_tool(name).handler(service, args)
