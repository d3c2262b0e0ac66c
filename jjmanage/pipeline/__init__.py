"""Concurrent refresh of managed repositories."""

from .jobs import JobSetBuilder, refresh_command
from .output import LineBuffer, OutputMultiplexer, Terminal
from .progress import ProgressRenderer
from .runner import ProcessSupervisor, RefreshPipeline
from .state import SupervisorState

__all__ = [
    "JobSetBuilder",
    "refresh_command",
    "LineBuffer",
    "OutputMultiplexer",
    "Terminal",
    "ProgressRenderer",
    "ProcessSupervisor",
    "RefreshPipeline",
    "SupervisorState",
]
