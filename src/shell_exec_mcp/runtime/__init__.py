"""Runtime module for shell subprocess management.

This module provides isolated process execution with reliable termination
and deadline enforcement for synchronous calls.
"""

from __future__ import annotations

from .process_runner import ProcessRunner, ProcessSpec, ShellProcess, normalize_exit_code
from .timeout import (
    DEFAULT_TIMEOUT_MS,
    GRACE_PERIOD,
    TIMEOUT_EXIT_CODE,
    SupervisedRun,
    TimeoutSupervisor,
)

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "ShellProcess",
    "normalize_exit_code",
    "DEFAULT_TIMEOUT_MS",
    "GRACE_PERIOD",
    "TIMEOUT_EXIT_CODE",
    "SupervisedRun",
    "TimeoutSupervisor",
]
