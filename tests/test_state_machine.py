"""Tests for taskflow.state_machine — task lifecycle and approval gating."""

from __future__ import annotations

import pytest

from taskflow.errors import (
    CompletedError,
    ImmutableError,
    NotDoneError,
    NotFoundError,
    SubtasksPendingError,
)
from taskflow.state_machine import (
    NextKind,
    Outcome,
    RequestMachine,
    SubtaskSpec,
    SubtaskState,
    TaskSpec,
    TaskState,
    subtask_state,
)
from taskflow.tasks.ids import Counters, IdAllocator
from taskflow.tasks.model import Subtask


def _sub(id: str, done: bool = False) -> Subtask:
    return Subtask(id=id, title=f"Subtask {id}", description="", done=done)


# ═══════════════════════════════════════════════════════════════════
#  Next task selection
# ═══════════════════════════════════════════════════════════════════


class TestSelectNext:
    def test_first_pending_task_in_order(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True), make_task("task-2"), make_task("task-3")]))
        nxt = m.select_next()
        assert nxt.kind == NextKind.NEXT_TASK
        assert nxt.task.id == "task-2"

    def test_idempotent(self, make_task, make_request):
        """Repeated calls without mark_done return the same task."""
        m = RequestMachine(make_request([make_task("task-1"), make_task("task-2")]))
        assert m.select_next().task is m.select_next().task

    def test_all_done_awaits_approval(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True)]))
        assert m.select_next().kind == NextKind.ALL_TASKS_DONE

    def test_completed_request(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")], completed=True))
        assert m.select_next().kind == NextKind.ALREADY_COMPLETED

    def test_empty_request_has_no_next_task(self, make_request):
        assert RequestMachine(make_request([])).select_next().kind == NextKind.NO_NEXT_TASK


# ═══════════════════════════════════════════════════════════════════
#  Done / approval transitions
# ═══════════════════════════════════════════════════════════════════


class TestMarkDone:
    def test_pending_to_done(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]))
        assert m.mark_done("task-1", "shipped") == Outcome.APPLIED
        task = m.task("task-1")
        assert task.done is True
        assert task.approved is False
        assert task.completed_details == "shipped"
        assert m.state("task-1") == TaskState.DONE_UNAPPROVED

    def test_details_default_to_empty(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]))
        m.mark_done("task-1")
        assert m.task("task-1").completed_details == ""

    def test_already_done_is_not_an_error(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True)]))
        m.task("task-1").completed_details = "first"
        assert m.mark_done("task-1", "second") == Outcome.ALREADY_DONE
        assert m.task("task-1").completed_details == "first"

    def test_unknown_task(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]))
        with pytest.raises(NotFoundError):
            m.mark_done("task-9")

    def test_open_subtasks_block_done(self, make_task, make_request):
        task = make_task("task-1", subtasks=[_sub("subtask-2", done=True), _sub("subtask-3")])
        m = RequestMachine(make_request([task]))
        with pytest.raises(SubtasksPendingError) as excinfo:
            m.mark_done("task-1")
        assert [sid for sid, _ in excinfo.value.pending] == ["subtask-3"]
        assert task.done is False


class TestSubtasks:
    def test_mark_subtask_done_reports_all_done(self, make_task, make_request):
        task = make_task("task-1", subtasks=[_sub("subtask-2"), _sub("subtask-3")])
        m = RequestMachine(make_request([task]))
        first = m.mark_subtask_done("task-1", "subtask-2")
        assert first.outcome == Outcome.APPLIED
        assert first.all_subtasks_done is False
        second = m.mark_subtask_done("task-1", "subtask-3")
        assert second.all_subtasks_done is True
        assert subtask_state(second.subtask) == SubtaskState.DONE

    def test_subtask_done_only_once(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", subtasks=[_sub("subtask-2", done=True)])]))
        assert m.mark_subtask_done("task-1", "subtask-2").outcome == Outcome.ALREADY_DONE

    def test_unknown_subtask(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]))
        with pytest.raises(NotFoundError):
            m.mark_subtask_done("task-1", "subtask-9")

    def test_add_subtasks_allocates_from_shared_counter(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]), IdAllocator(Counters(task=1)))
        added = m.add_subtasks("task-1", [SubtaskSpec("a"), SubtaskSpec("b")])
        assert [s.id for s in added] == ["subtask-2", "subtask-3"]
        assert [s.id for s in m.task("task-1").subtasks] == ["subtask-2", "subtask-3"]

    def test_add_subtasks_to_done_task_rejected(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True)]))
        with pytest.raises(ImmutableError):
            m.add_subtasks("task-1", [SubtaskSpec("a")])

    def test_update_subtask_is_partial(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", subtasks=[_sub("subtask-2")])]))
        sub = m.update_subtask("task-1", "subtask-2", description="new")
        assert sub.title == "Subtask subtask-2"
        assert sub.description == "new"

    def test_done_subtask_is_immutable(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", subtasks=[_sub("subtask-2", done=True)])]))
        with pytest.raises(ImmutableError):
            m.update_subtask("task-1", "subtask-2", title="x")
        with pytest.raises(ImmutableError):
            m.delete_subtask("task-1", "subtask-2")

    def test_delete_subtask_preserves_order(self, make_task, make_request):
        task = make_task("task-1", subtasks=[_sub("subtask-2"), _sub("subtask-3"), _sub("subtask-4")])
        m = RequestMachine(make_request([task]))
        m.delete_subtask("task-1", "subtask-3")
        assert [s.id for s in task.subtasks] == ["subtask-2", "subtask-4"]


class TestApproval:
    def test_approve_done_task(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True)]))
        assert m.approve_task("task-1") == Outcome.APPLIED
        assert m.state("task-1") == TaskState.DONE_APPROVED

    def test_approve_requires_done(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1")]))
        with pytest.raises(NotDoneError):
            m.approve_task("task-1")
        assert m.task("task-1").approved is False

    def test_approve_twice(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True, approved=True)]))
        assert m.approve_task("task-1") == Outcome.ALREADY_APPROVED

    def test_request_completion_needs_every_task_approved(self, make_task, make_request):
        req = make_request([make_task("task-1", done=True, approved=True), make_task("task-2", done=True)])
        m = RequestMachine(req)
        with pytest.raises(NotDoneError) as excinfo:
            m.approve_completion()
        assert excinfo.value.pending == ["task-2"]
        assert req.completed is False

        m.approve_task("task-2")
        assert m.approve_completion() == Outcome.APPLIED
        assert req.completed is True

    def test_completion_is_terminal(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True, approved=True)], completed=True))
        with pytest.raises(CompletedError):
            m.approve_completion()


class TestTaskSet:
    def test_add_tasks_appends_in_order(self, make_task, make_request):
        req = make_request([make_task("task-1")])
        m = RequestMachine(req, IdAllocator(Counters(request=1, task=1)))
        added = m.add_tasks([TaskSpec("A", subtasks=[SubtaskSpec("a1")]), TaskSpec("B")])
        assert [t.id for t in added] == ["task-2", "task-4"]
        assert added[0].subtasks[0].id == "subtask-3"
        assert [t.id for t in req.tasks] == ["task-1", "task-2", "task-4"]

    def test_add_tasks_to_completed_request(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", done=True, approved=True)], completed=True))
        with pytest.raises(CompletedError):
            m.add_tasks([TaskSpec("late")])

    def test_update_task_is_partial(self, make_task, make_request):
        m = RequestMachine(make_request([make_task("task-1", title="Old")]))
        task = m.update_task("task-1", description="new desc")
        assert task.title == "Old"
        assert task.description == "new desc"

    def test_done_task_is_immutable(self, make_task, make_request):
        req = make_request([make_task("task-1", done=True), make_task("task-2")])
        m = RequestMachine(req)
        with pytest.raises(ImmutableError):
            m.update_task("task-1", title="x")
        with pytest.raises(ImmutableError):
            m.delete_task("task-1")
        assert [t.id for t in req.tasks] == ["task-1", "task-2"]

    def test_delete_task_keeps_other_ids(self, make_task, make_request):
        req = make_request([make_task("task-1"), make_task("task-2"), make_task("task-3")])
        RequestMachine(req).delete_task("task-2")
        assert [t.id for t in req.tasks] == ["task-1", "task-3"]
