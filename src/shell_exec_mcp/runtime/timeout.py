"""Deadline enforcement for synchronous command execution.

The supervisor races a ShellProcess against a deadline:

1. Process finishes before the deadline -> natural exit code
2. Deadline fires -> SIGTERM, wait up to ``grace_period``
3. Still alive -> SIGKILL, wait up to ``reap_timeout`` for the pipes to close

Any run that reaches step 2 is reported with exit code 124.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from .process_runner import (
    DEFAULT_KILL_TIMEOUT,
    OutputCallback,
    ShellProcess,
    normalize_exit_code,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "GRACE_PERIOD",
    "TIMEOUT_EXIT_CODE",
    "SupervisedRun",
    "TimeoutSupervisor",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000
GRACE_PERIOD = 1.0  # seconds between SIGTERM and SIGKILL
TIMEOUT_EXIT_CODE = 124  # same convention as coreutils timeout(1)


@dataclass(frozen=True)
class SupervisedRun:
    """Outcome of a supervised run."""

    exit_code: int
    timed_out: bool


@dataclass
class TimeoutSupervisor:
    """Runs a process to completion or kills it at the deadline.

    Attributes:
        grace_period: Seconds to wait after SIGTERM before SIGKILL
        reap_timeout: Seconds to wait for the pipes to close after SIGKILL
    """

    grace_period: float = GRACE_PERIOD
    reap_timeout: float = DEFAULT_KILL_TIMEOUT

    async def run(
        self,
        process: ShellProcess,
        timeout: float,
        *,
        on_stdout: OutputCallback,
        on_stderr: OutputCallback,
    ) -> SupervisedRun:
        """Drain the process, enforcing ``timeout`` (seconds).

        Raises:
            OSError: If the output pipes fail before the deadline
        """
        drain = asyncio.ensure_future(process.communicate(on_stdout, on_stderr))
        try:
            done, _ = await asyncio.wait({drain}, timeout=timeout)
            if done:
                return SupervisedRun(normalize_exit_code(drain.result()), timed_out=False)

            logger.info(f"Deadline reached after {timeout}s, terminating pid={process.pid}")
            process.terminate()

            done, _ = await asyncio.wait({drain}, timeout=self.grace_period)
            if not done:
                logger.info(f"Grace period elapsed, killing pid={process.pid}")
                process.kill()
                done, _ = await asyncio.wait({drain}, timeout=self.reap_timeout)

            if not done:
                logger.warning(f"Output pipes still open after kill pid={process.pid}")
            elif drain.exception() is not None:
                logger.debug(f"Pipe error after timeout pid={process.pid}: {drain.exception()}")

            return SupervisedRun(TIMEOUT_EXIT_CODE, timed_out=True)

        finally:
            if not drain.done():
                drain.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await drain
            await process.aclose()
