"""CLI tests: every command runs in-process against a temporary task file."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from taskflow import __version__
from taskflow.cli import main
from taskflow.io_utils import read_text, write_text

PLAN = {
    "originalRequest": "Add search",
    "tasks": [
        {"title": "Index", "description": "Build the index"},
        {"title": "Query", "description": "Query endpoint"},
    ],
}


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    return CliRunner()


@pytest.fixture
def invoke(cli_runner, task_file: Path):
    """Run the CLI against the test task file."""

    def _invoke(*args: str):
        return cli_runner.invoke(main, ["-f", str(task_file), *args])

    return _invoke


@pytest.fixture
def planned_cli(invoke):
    r = invoke("call", "plan_task", "--args", json.dumps(PLAN))
    assert r.exit_code == 0, r.output
    return r


# ── Main entry and help ────────────────────────────────────────────────


class TestCliHelpAndVersion:
    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "WORKFLOW" in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert __version__ in r.output


# ── tools / call ───────────────────────────────────────────────────────


class TestToolsCommand:
    def test_lists_tool_names(self, invoke):
        r = invoke("tools")
        assert r.exit_code == 0
        assert "plan_task" in r.output
        # one line per tool, even for the long workflow descriptions
        assert "Workflow:" not in r.output
        assert len(r.output.strip().splitlines()) == 19

    def test_schema_json(self, invoke):
        r = invoke("tools", "--schema")
        assert r.exit_code == 0
        tools = {t["name"]: t for t in json.loads(r.output)["tools"]}
        assert "requestId" in tools["get_next_task"]["inputSchema"]["properties"]


class TestCallCommand:
    def test_plan_writes_task_file(self, planned_cli, task_file: Path):
        result = json.loads(planned_cli.output)
        assert result["status"] == "planned"
        doc = json.loads(read_text(task_file))
        assert [t["id"] for t in doc["requests"][0]["tasks"]] == ["task-1", "task-2"]

    def test_args_file(self, invoke, tmp_path: Path):
        args_file = tmp_path / "plan.json"
        write_text(args_file, json.dumps(PLAN))
        r = invoke("call", "plan_task", "--args-file", str(args_file))
        assert r.exit_code == 0
        assert json.loads(r.output)["requestId"] == "req-1"

    def test_env_var_selects_task_file(self, cli_runner, monkeypatch, tmp_path: Path):
        target = tmp_path / "from-env.json"
        monkeypatch.setenv("TASK_MANAGER_FILE_PATH", str(target))
        r = cli_runner.invoke(main, ["call", "plan_task", "--args", json.dumps(PLAN)])
        assert r.exit_code == 0
        assert target.exists()

    def test_invalid_json(self, invoke):
        r = invoke("call", "list_requests", "--args", "{nope")
        assert r.exit_code == 2

    def test_non_object_arguments(self, invoke):
        r = invoke("call", "list_requests", "--args", "[]")
        assert r.exit_code == 2

    def test_unknown_tool_exits_2(self, invoke, task_file: Path):
        r = invoke("call", "frobnicate")
        assert r.exit_code == 2
        assert not task_file.exists()

    def test_invalid_arguments_exit_2(self, invoke):
        r = invoke("call", "get_next_task", "--args", "{}")
        assert r.exit_code == 2

    def test_error_status_exits_1(self, invoke):
        r = invoke("call", "get_next_task", "--args", json.dumps({"requestId": "req-9"}))
        assert r.exit_code == 1
        assert '"status": "error"' in r.output


# ── Shortcuts ──────────────────────────────────────────────────────────


class TestShortcuts:
    def test_list_empty(self, invoke):
        r = invoke("list")
        assert r.exit_code == 0
        assert "No requests yet" in r.output

    def test_list_json(self, invoke, planned_cli):
        r = invoke("list", "--json")
        assert r.exit_code == 0
        rows = json.loads(r.output)["requests"]
        assert rows[0]["requestId"] == "req-1"
        assert rows[0]["totalTasks"] == 2

    def test_list_table(self, invoke, planned_cli):
        r = invoke("list")
        assert r.exit_code == 0
        assert "req-1" in r.output

    def test_next_show_approve(self, invoke, planned_cli):
        r = invoke("next", "req-1")
        assert r.exit_code == 0
        assert json.loads(r.output)["task"]["id"] == "task-1"

        r = invoke("show", "task-2")
        assert json.loads(r.output)["status"] == "task_details"

        # approving an unfinished task is rejected
        assert invoke("approve", "req-1", "task-1").exit_code == 1

        done = invoke("call", "mark_task_done", "--args", json.dumps({"requestId": "req-1", "taskId": "task-1"}))
        assert done.exit_code == 0
        r = invoke("approve", "req-1", "task-1")
        assert r.exit_code == 0
        assert json.loads(r.output)["status"] == "task_approved"

        assert invoke("approve-request", "req-1").exit_code == 1

    def test_export(self, invoke, planned_cli, tmp_path: Path):
        out = tmp_path / "report.html"
        r = invoke("export", "req-1", str(out), "--format", "html")
        assert r.exit_code == 0
        assert json.loads(r.output)["format"] == "html"
        assert read_text(out).startswith("<!DOCTYPE html>")

    def test_export_rejects_unknown_format(self, invoke, planned_cli, tmp_path: Path):
        r = invoke("export", "req-1", str(tmp_path / "x"), "--format", "pdf")
        assert r.exit_code == 2
