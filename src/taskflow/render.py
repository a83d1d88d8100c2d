"""Read-only text renderers: progress tables, plan and status reports."""

from __future__ import annotations

import json
from datetime import date, datetime
from html import escape

from taskflow.tasks.model import Dependency, Request

ORIGINAL_REQUEST_WIDTH = 30

_DONE = "✅ Done"
_IN_PROGRESS = "🔄 In Progress"


def truncate(text: str, width: int = ORIGINAL_REQUEST_WIDTH) -> str:
    if len(text) <= width:
        return text
    return f"{text[:width]}..."


def _percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(part * 100 / total + 0.5)


def _dep_label(dep: Dependency) -> str:
    label = dep.name
    if dep.version:
        label += f" ({dep.version})"
    if dep.description:
        label += f": {dep.description}"
    return label


def _format_timestamp(stamp: str) -> str:
    try:
        parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return stamp
    return parsed.strftime("%Y-%m-%d %H:%M:%S UTC")


# ── Tables embedded in tool results ──────────────────────────────────


def progress_table(request: Request) -> str:
    """Markdown table of every task (and subtask) of *request*."""
    lines = [
        "",
        "Progress Status:",
        "| Task ID | Title | Description | Status | Approval | Subtasks |",
        "|----------|----------|------|------|----------|----------|",
    ]
    for task in request.tasks:
        status = _DONE if task.done else _IN_PROGRESS
        approved = "✅ Approved" if task.approved else "⏳ Pending"
        total = len(task.subtasks)
        done = total - len(task.pending_subtasks())
        subtasks = f"{done}/{total}" if total else "None"
        lines.append(
            f"| {task.id} | {task.title} | {task.description} | {status} | {approved} | {subtasks} |"
        )
        for sub in task.subtasks:
            sub_status = _DONE if sub.done else _IN_PROGRESS
            lines.append(f"| └─ {sub.id} | {sub.title} | {sub.description} | {sub_status} | - | - |")
    return "\n".join(lines) + "\n"


def requests_table(requests: list[Request]) -> str:
    lines = [
        "",
        "Requests List:",
        "| Request ID | Original Request | Total Tasks | Completed | Approved |",
        "|------------|------------------|-------------|-----------|----------|",
    ]
    for req in requests:
        lines.append(
            f"| {req.request_id} | {truncate(req.original_request)} | {len(req.tasks)} "
            f"| {req.count_done()} | {req.count_approved()} |"
        )
    return "\n".join(lines) + "\n"


# ── Plan export ──────────────────────────────────────────────────────


def plan_markdown(request: Request) -> str:
    """Markdown plan written next to a freshly planned request."""
    out = [f"# Project Plan: {request.original_request}", ""]

    if request.split_details and request.split_details != request.original_request:
        out += ["## Details", request.split_details, ""]

    if request.dependencies:
        out += ["## Dependencies", ""]
        for dep in request.dependencies:
            line = f"- **{dep.name}**"
            if dep.version:
                line += f" ({dep.version})"
            if dep.description:
                line += f": {dep.description}"
            if dep.url:
                line += f" - [Link]({dep.url})"
            out.append(line)
        out.append("")

    if request.notes:
        out += ["## Notes", ""]
        for note in request.notes:
            out += [f"### {note.title}", note.content, ""]

    out.append("## Tasks Overview")
    for task in request.tasks:
        out.append(f"- [ ] {task.title}")
        for sub in task.subtasks:
            out.append(f"  - [ ] {sub.title}")
        if task.dependencies:
            names = ", ".join(
                d.name + (f" ({d.version})" if d.version else "") for d in task.dependencies
            )
            out.append(f"  - Dependencies: {names}")
    out.append("")

    out += ["## Detailed Tasks", ""]
    for i, task in enumerate(request.tasks, 1):
        out += [f"### {i}. {task.title}", f"**Description:** {task.description}", ""]
        if task.dependencies:
            out.append("**Dependencies:**")
            for dep in task.dependencies:
                line = f"- {_dep_label(dep)}"
                if dep.url:
                    line += f" - [Link]({dep.url})"
                out.append(line)
            out.append("")
        if task.subtasks:
            out.append("**Subtasks:**")
            for sub in task.subtasks:
                out += [f"- [ ] {sub.title}", f"  - Description: {sub.description}"]
            out.append("")

    out += [
        "## Progress Tracking",
        "",
        "| Task | Status |",
        "|------|--------|",
    ]
    for task in request.tasks:
        out.append(f"| {task.title} | {_DONE if task.done else _IN_PROGRESS} |")
    return "\n".join(out) + "\n"


# ── Status export ────────────────────────────────────────────────────


def status_markdown(request: Request, today: date | None = None) -> str:
    today = today or date.today()
    total = len(request.tasks)
    done = request.count_done()
    approved = request.count_approved()

    out = [
        f"# Task Status Report: {request.original_request}",
        "",
        f"*Generated on: {today.isoformat()}*",
        "",
        f"## Overall Progress: {_percent(done, total)}%",
        "",
        f"- **Total Tasks:** {total}",
        f"- **Completed Tasks:** {done}",
        f"- **Approved Tasks:** {approved}",
        f"- **Remaining Tasks:** {total - done}",
        "",
    ]

    if request.notes:
        out += ["## Notes", ""]
        for note in request.notes:
            out += [
                f"### {note.title}",
                note.content,
                "",
                f"*Last updated: {_format_timestamp(note.updated_at)}*",
                "",
            ]

    out += ["## Task Status", ""]
    for i, task in enumerate(request.tasks, 1):
        status = _DONE if task.done else _IN_PROGRESS
        if task.approved:
            approval = "✅ Approved"
        elif task.done:
            approval = "⏳ Pending Approval"
        else:
            approval = "⏳ Not Ready"
        out += [
            f"### {i}. {task.title} ({status})",
            f"**Description:** {task.description}",
            "",
            f"**Status:** {status}",
            f"**Approval:** {approval}",
        ]
        if task.done and task.completed_details:
            out += [f"**Completion Details:** {task.completed_details}", ""]

        if task.subtasks:
            sub_total = len(task.subtasks)
            sub_done = sub_total - len(task.pending_subtasks())
            out += [
                f"**Subtask Progress:** {_percent(sub_done, sub_total)}% ({sub_done}/{sub_total})",
                "",
                "| Subtask | Description | Status |",
                "|---------|-------------|--------|",
            ]
            for sub in task.subtasks:
                out.append(f"| {sub.title} | {sub.description} | {_DONE if sub.done else _IN_PROGRESS} |")
            out.append("")

        if task.dependencies:
            out.append("**Dependencies:**")
            out += [f"- {_dep_label(dep)}" for dep in task.dependencies]
            out.append("")
    return "\n".join(out) + "\n"


def status_json(request: Request) -> str:
    return json.dumps(request.to_dict(), indent=2, ensure_ascii=False)


_HTML_STYLE = """\
    body { font-family: Arial, sans-serif; line-height: 1.6; max-width: 1000px; margin: 0 auto; padding: 20px; }
    h1, h2, h3 { color: #333; }
    .progress-bar { background-color: #f0f0f0; border-radius: 4px; height: 20px; margin-bottom: 20px; }
    .progress-bar-fill { background-color: #4CAF50; height: 100%; border-radius: 4px; }
    .task { border: 1px solid #ddd; padding: 15px; margin-bottom: 15px; border-radius: 4px; }
    .task-header { display: flex; justify-content: space-between; align-items: center; }
    .task-status { padding: 5px 10px; border-radius: 4px; font-size: 14px; }
    .status-done, .status-approved { background-color: #E8F5E9; color: #2E7D32; }
    .status-progress { background-color: #E3F2FD; color: #1565C0; }
    .status-pending { background-color: #FFF8E1; color: #F57F17; }
    table { border-collapse: collapse; width: 100%; }
    th, td { text-align: left; padding: 8px; border-bottom: 1px solid #ddd; }
    th { background-color: #f2f2f2; }
    .note { background-color: #FFF8E1; padding: 10px; border-left: 4px solid #FFC107; margin-bottom: 15px; }"""


def status_html(request: Request, today: date | None = None) -> str:
    """Standalone HTML status page. All user text is escaped."""
    today = today or date.today()
    total = len(request.tasks)
    done = request.count_done()
    pct = _percent(done, total)
    title = escape(request.original_request)

    out = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"  <title>Task Status: {title}</title>",
        "  <style>",
        _HTML_STYLE,
        "  </style>",
        "</head>",
        "<body>",
        f"  <h1>Task Status: {title}</h1>",
        f"  <p><em>Generated on: {today.isoformat()}</em></p>",
        f"  <h2>Overall Progress: {pct}%</h2>",
        '  <div class="progress-bar">',
        f'    <div class="progress-bar-fill" style="width: {pct}%"></div>',
        "  </div>",
        f"  <p><strong>Total Tasks:</strong> {total} | <strong>Completed:</strong> {done} | "
        f"<strong>Remaining:</strong> {total - done}</p>",
    ]

    if request.notes:
        out.append("  <h2>Notes</h2>")
        for note in request.notes:
            out += [
                '  <div class="note">',
                f"    <h3>{escape(note.title)}</h3>",
                f"    <p>{escape(note.content)}</p>",
                f"    <p><small>Last updated: {escape(_format_timestamp(note.updated_at))}</small></p>",
                "  </div>",
            ]

    out.append("  <h2>Task Status</h2>")
    for i, task in enumerate(request.tasks, 1):
        status_cls = "status-done" if task.done else "status-progress"
        approval_cls = "status-approved" if task.approved else "status-pending"
        status = "Done" if task.done else "In Progress"
        if task.approved:
            approval = "Approved"
        elif task.done:
            approval = "Pending Approval"
        else:
            approval = "Not Ready"
        out += [
            '  <div class="task">',
            '    <div class="task-header">',
            f"      <h3>{i}. {escape(task.title)}</h3>",
            f'      <span class="task-status {status_cls}">{status}</span>',
            "    </div>",
            f"    <p><strong>Description:</strong> {escape(task.description)}</p>",
            f'    <p><strong>Approval:</strong> <span class="task-status {approval_cls}">{approval}</span></p>',
        ]
        if task.done and task.completed_details:
            out.append(f"    <p><strong>Completion Details:</strong> {escape(task.completed_details)}</p>")

        if task.subtasks:
            sub_total = len(task.subtasks)
            sub_done = sub_total - len(task.pending_subtasks())
            out += [
                f"    <p><strong>Subtask Progress:</strong> {_percent(sub_done, sub_total)}% ({sub_done}/{sub_total})</p>",
                "    <table>",
                "      <tr><th>Subtask</th><th>Description</th><th>Status</th></tr>",
            ]
            for sub in task.subtasks:
                cls = "status-done" if sub.done else "status-progress"
                label = "Done" if sub.done else "In Progress"
                out.append(
                    f"      <tr><td>{escape(sub.title)}</td><td>{escape(sub.description)}</td>"
                    f'<td><span class="task-status {cls}">{label}</span></td></tr>'
                )
            out.append("    </table>")

        if task.dependencies:
            out += ["    <p><strong>Dependencies:</strong></p>", "    <ul>"]
            out += [f"      <li>{escape(_dep_label(dep))}</li>" for dep in task.dependencies]
            out.append("    </ul>")
        out.append("  </div>")

    out += ["</body>", "</html>"]
    return "\n".join(out) + "\n"


def render_status(request: Request, fmt: str = "markdown") -> str:
    match fmt:
        case "markdown":
            return status_markdown(request)
        case "json":
            return status_json(request)
        case "html":
            return status_html(request)
        case _:
            raise ValueError(f"Unsupported format: {fmt}")
