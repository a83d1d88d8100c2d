"""taskflow — approval-gated request/task workflow tracker."""

from taskflow.config import VERSION

__version__ = VERSION
