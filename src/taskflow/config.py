"""Configuration defaults, env vars, and runtime options for taskflow."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


VERSION = "1.1.0"

FILE_PATH_ENV = "TASK_MANAGER_FILE_PATH"

DEFAULT_TASK_FILE = Path.home() / "Documents" / "tasks.json"

EXPORT_FORMATS: tuple[str, ...] = ("markdown", "json", "html")


@dataclass
class Config:
    """Runtime configuration resolved from flags and the environment."""

    # Durable store
    task_file: str = ""

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.task_file:
            self.task_file = os.environ.get(FILE_PATH_ENV) or str(DEFAULT_TASK_FILE)

    @property
    def task_path(self) -> Path:
        return Path(self.task_file).expanduser()
