"""taskflow CLI — invoke workflow tools from the shell.

Installed as ``taskflow`` console_script via pipx / pip.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from taskflow import __version__
from taskflow.config import EXPORT_FORMATS, FILE_PATH_ENV, Config
from taskflow.errors import PersistenceError, ToolValidationError
from taskflow.io_utils import read_text
from taskflow.service import Result, TaskFlowService


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


def _service(ctx: click.Context) -> TaskFlowService:
    cfg: Config = ctx.obj
    return TaskFlowService(cfg.task_path)


def _emit(result: Result) -> None:
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


def _load_arguments(raw: str, args_file: str) -> dict[str, Any]:
    if raw and args_file:
        raise click.UsageError("Use either --args or --args-file, not both.")
    if args_file:
        raw = read_text(args_file)
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Not valid JSON: {exc}", param_hint="--args") from exc
    if not isinstance(parsed, dict):
        raise click.BadParameter("Arguments must be a JSON object.", param_hint="--args")
    return parsed


def _run(ctx: click.Context, name: str, arguments: dict[str, Any]) -> None:
    from taskflow import log as tlog
    from taskflow.tools import call_tool

    try:
        result = call_tool(_service(ctx), name, arguments)
    except ToolValidationError as exc:
        tlog.error(str(exc))
        sys.exit(2)
    except PersistenceError as exc:
        tlog.error(str(exc))
        sys.exit(1)
    _emit(result)
    if result.get("status") == "error":
        sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-f",
    "--file",
    "task_file",
    default="",
    help=f"Task file path (default: ${FILE_PATH_ENV} or ~/Documents/tasks.json)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="taskflow")
@click.pass_context
def main(ctx: click.Context, task_file: str, verbose: bool) -> None:
    """taskflow — approval-gated task workflow for agents.

    \b
    WORKFLOW:
      1. plan_task                   register a request and its tasks
      2. get_next_task               fetch the first pending task
      3. mark_subtask_done           finish each subtask
      4. mark_task_done              finish the task
      5. approve_task_completion     the user approves; back to step 2
      6. approve_request_completion  the user approves the whole request

    \b
    EXAMPLES:
      taskflow tools
      taskflow call plan_task --args-file plan.json
      taskflow next req-1
      taskflow approve req-1 task-1
    """
    from taskflow import log as tlog

    tlog.set_verbose(verbose)
    ctx.obj = Config(task_file=task_file, verbose=verbose)
    tlog.debug(f"Task file: {ctx.obj.task_path}")


# ── Generic tool invocation ──────────────────────────────────────────


@main.command("tools")
@click.option("--schema", is_flag=True, help="Print JSON input schemas as well")
def tools_cmd(schema: bool) -> None:
    """List the available tools."""
    from taskflow.tools import TOOLS

    if schema:
        _emit({
            "tools": [
                {"name": t.name, "description": t.description, "inputSchema": t.input_schema()}
                for t in TOOLS.values()
            ]
        })
        return

    width = max(len(name) for name in TOOLS)
    for t in TOOLS.values():
        click.echo(f"{t.name:<{width}}  {t.description.splitlines()[0]}")


@main.command("call")
@click.argument("name")
@click.option("--args", "raw_args", default="", help="Tool arguments as a JSON object")
@click.option("--args-file", default="", type=click.Path(dir_okay=False), help="Read tool arguments from a JSON file")
@click.pass_context
def call_cmd(ctx: click.Context, name: str, raw_args: str, args_file: str) -> None:
    """Validate and run tool NAME, printing its JSON result."""
    _run(ctx, name, _load_arguments(raw_args, args_file))


# ── Shortcuts ────────────────────────────────────────────────────────


@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON result")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """Summarize every request in the task file."""
    result = _service(ctx).list_requests()
    if as_json:
        _emit(result)
        return

    if not result["requests"]:
        click.echo("No requests yet.")
        return
    click.echo(result["message"])


@main.command("next")
@click.argument("request_id")
@click.pass_context
def next_cmd(ctx: click.Context, request_id: str) -> None:
    """Show the next pending task of REQUEST_ID."""
    _run(ctx, "get_next_task", {"requestId": request_id})


@main.command("show")
@click.argument("task_id")
@click.pass_context
def show_cmd(ctx: click.Context, task_id: str) -> None:
    """Show details of a task or subtask."""
    _run(ctx, "open_task_details", {"taskId": task_id})


@main.command("approve")
@click.argument("request_id")
@click.argument("task_id")
@click.pass_context
def approve_cmd(ctx: click.Context, request_id: str, task_id: str) -> None:
    """Approve a completed task."""
    _run(ctx, "approve_task_completion", {"requestId": request_id, "taskId": task_id})


@main.command("approve-request")
@click.argument("request_id")
@click.pass_context
def approve_request_cmd(ctx: click.Context, request_id: str) -> None:
    """Approve completion of a whole request."""
    _run(ctx, "approve_request_completion", {"requestId": request_id})


@main.command("export")
@click.argument("request_id")
@click.argument("output_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(EXPORT_FORMATS), default="markdown", show_default=True)
@click.pass_context
def export_cmd(ctx: click.Context, request_id: str, output_path: Path, fmt: str) -> None:
    """Export the status of REQUEST_ID to OUTPUT_PATH."""
    _run(
        ctx,
        "export_task_status",
        {"requestId": request_id, "outputPath": str(output_path), "format": fmt},
    )
