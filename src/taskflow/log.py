"""Diagnostics printed with Rich.

Everything goes to stderr: stdout carries nothing but tool results, so a
caller can always parse it as JSON.
"""

from __future__ import annotations

from rich.console import Console

console = Console(highlight=False, stderr=True)

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def warn(msg: str) -> None:
    console.print(f"[yellow]\\[WARN][/yellow] {msg}")


def error(msg: str) -> None:
    console.print(f"[red]\\[ERROR][/red] {msg}")


def debug(msg: str) -> None:
    """Only shown with ``--verbose``."""
    if _verbose:
        console.print(f"[dim]\\[DEBUG] {msg}[/dim]")
