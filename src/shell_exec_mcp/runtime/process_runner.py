"""Process runner for shell commands with isolation and reliable termination.

shell-exec-mcp runtime module

This module provides:
- Shell subprocess spawning (``<shell> -c <command>``) with no stdin attached
- Independent stdout/stderr capture, decoded incrementally as UTF-8
- Graceful (SIGTERM) and forced (SIGKILL) termination of the process group
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True so signals reach the whole pipeline
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- The exit status is only reported after both pipes hit EOF and the
  process has been reaped
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import anyio

__all__ = [
    "ProcessRunner",
    "ProcessSpec",
    "ShellProcess",
    "normalize_exit_code",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts used by aclose()
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

READ_CHUNK_SIZE = 4096

OutputCallback = Callable[[str], None]


def normalize_exit_code(returncode: int | None) -> int:
    """Map an asyncio returncode to the exit code reported to callers.

    A process terminated by a signal has a negative returncode; like a
    missing code it is reported as a generic failure (1).
    """
    if returncode is None or returncode < 0:
        return 1
    return returncode


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory (None = inherit)
        env: Environment variables (None = inherit parent)
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    @classmethod
    def shell(
        cls,
        command: str,
        *,
        shell: str = "bash",
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "ProcessSpec":
        """Build a spec that hands the whole command string to a shell."""
        return cls(argv=[shell, "-c", command], cwd=cwd, env=env)


class ShellProcess:
    """Handle to a running subprocess.

    The handle is the only object that signals or waits on the process.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        term_timeout: float = DEFAULT_TERM_TIMEOUT,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        self._process = process
        self._term_timeout = term_timeout
        self._kill_timeout = kill_timeout
        self._io_error: OSError | None = None
        # Both pipes reached EOF: nothing in the group still holds them.
        self._drained = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def finished(self) -> bool:
        """True once the leader is reaped and its pipes are closed.

        The leader alone exiting is not enough: a backgrounded child
        (``sleep 30 &``) keeps the group and the pipes alive.
        """
        return self._process.returncode is not None and self._drained

    async def communicate(
        self,
        on_stdout: OutputCallback,
        on_stderr: OutputCallback,
    ) -> int:
        """Drain stdout and stderr through the callbacks, then reap.

        Both pipes are read concurrently until EOF, so every byte the process
        wrote before exiting has been delivered before this returns.

        Returns:
            Raw returncode of the process (negative if killed by a signal)

        Raises:
            OSError: If reading from either pipe fails
        """
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._pump, self._process.stdout, on_stdout)
            tg.start_soon(self._pump, self._process.stderr, on_stderr)
        self._drained = self._io_error is None

        if self._io_error is not None:
            raise self._io_error

        returncode = await self._process.wait()
        logger.debug(
            f"Subprocess completed pid={self.pid} returncode={returncode}"
        )
        return returncode

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        callback: OutputCallback,
    ) -> None:
        if stream is None:
            return

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    callback(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                callback(tail)
        except OSError as e:
            logger.debug(f"Pipe read failed pid={self.pid}: {e}")
            if self._io_error is None:
                self._io_error = e

    def terminate(self) -> None:
        """Send the graceful termination signal (SIGTERM to the group)."""
        if IS_WINDOWS:
            if self._process.returncode is None:
                self._signal_windows(signal.CTRL_BREAK_EVENT)
        elif not self.finished:
            self._signal_group(signal.SIGTERM)

    def kill(self) -> None:
        """Send the forced termination signal (SIGKILL to the group)."""
        if IS_WINDOWS:
            if self._process.returncode is None:
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
        elif not self.finished:
            self._signal_group(signal.SIGKILL)

    def _signal_group(self, sig: signal.Signals) -> None:
        # pgid == pid because of start_new_session. The group outlives a
        # reaped leader, so getpgid() on the leader is not usable here.
        pgid = self._process.pid
        try:
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, signalling pid only: {e}")
            try:
                self._process.send_signal(sig)
            except ProcessLookupError:
                pass

    def _group_alive(self) -> bool:
        if IS_WINDOWS:
            return False
        try:
            os.killpg(self._process.pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def _signal_windows(self, sig: int) -> None:
        try:
            os.kill(self._process.pid, sig)
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    async def aclose(self) -> None:
        """Make sure the process group is gone, even if the caller is cancelled."""
        try:
            await asyncio.shield(self._terminate_and_reap())
        except asyncio.CancelledError:
            await self._terminate_and_reap()
            raise

    async def _wait_gone(self, timeout: float) -> bool:
        """Wait for the leader to be reaped and the group to empty."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False

        while self._group_alive():
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.02)
        return True

    async def _terminate_and_reap(self) -> None:
        if self.finished:
            return

        pid = self._process.pid
        logger.debug(f"Terminating process group pid={pid}")

        self.terminate()
        if await self._wait_gone(self._term_timeout):
            logger.debug(f"Process group terminated gracefully pid={pid}")
            return

        logger.debug(f"Force killing process group pid={pid}")
        self.kill()
        if not await self._wait_gone(self._kill_timeout):
            logger.warning(f"Process group did not exit after kill pid={pid}")


@dataclass
class ProcessRunner:
    """Starts isolated subprocesses and hands back a ShellProcess.

    Example:
        runner = ProcessRunner()
        process = await runner.start(ProcessSpec.shell("echo hello"))
        code = await process.communicate(out.append, err.append)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT

    async def start(self, spec: ProcessSpec) -> ShellProcess:
        """Spawn the subprocess without waiting for any output.

        Raises:
            OSError: If the executable cannot be started
        """
        # stdin=DEVNULL: inheriting stdin would hand the child the stdio
        # JSON-RPC channel of the server.
        process = await asyncio.create_subprocess_exec(
            *spec.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=spec.cwd,
            **self._build_subprocess_kwargs(spec),
        )
        logger.debug(f"Started subprocess pid={process.pid} argv0={spec.argv[0]}")
        return ShellProcess(
            process,
            term_timeout=self.term_timeout,
            kill_timeout=self.kill_timeout,
        )

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs
