"""Error taxonomy shared by the store, the state machine and the tool surface."""

from __future__ import annotations

import errno

READ_ONLY_PATTERNS: tuple[str, ...] = (
    "erofs",
    "read-only file system",
    "read-only filesystem",
)


class TaskFlowError(Exception):
    """Base class for every error raised by taskflow."""


# ── Domain errors (recovered into ``error`` results) ─────────────────


class DomainError(TaskFlowError):
    """A rejected operation that leaves the store untouched."""


class NotFoundError(DomainError):
    """A request, task, subtask or note id does not resolve."""

    def __init__(self, kind: str, item_id: str = "") -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind.capitalize()} not found")


class ImmutableError(DomainError):
    """A mutation was attempted on a task or subtask that is already done."""


class CompletedError(DomainError):
    """A mutation was attempted on a request that is already completed."""


class NotDoneError(DomainError):
    """Approval was requested before the work it approves was finished."""

    def __init__(self, message: str, pending: list[str] | None = None) -> None:
        self.pending = pending or []
        super().__init__(message)


class SubtasksPendingError(DomainError):
    """A task cannot be marked done while some of its subtasks are open."""

    def __init__(self, pending: list[tuple[str, str]]) -> None:
        self.pending = pending
        super().__init__("Cannot mark task as done until all subtasks are completed.")


# ── Input validation ─────────────────────────────────────────────────


class ToolValidationError(TaskFlowError):
    """Tool arguments failed validation; nothing was loaded or written."""


# ── Persistence ──────────────────────────────────────────────────────


class PersistenceError(TaskFlowError):
    """Writing the store failed. The in-memory mutation may be lost."""


class ReadOnlyStoreError(PersistenceError):
    """The store lives on a read-only medium and can never be saved."""


def _contains_any(text: str, patterns: tuple[str, ...]) -> bool:
    lower = text.lower()
    return any(pattern in lower for pattern in patterns)


def is_read_only_error(exc: BaseException) -> bool:
    """Return ``True`` when *exc* reports a read-only file system."""
    if isinstance(exc, OSError) and exc.errno == errno.EROFS:
        return True
    text = str(exc)
    if not text:
        return False
    return _contains_any(text, READ_ONLY_PATTERNS)
