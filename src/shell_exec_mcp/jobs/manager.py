"""命令执行与后台 Job 生命周期管理。

JobManager 是两个工具操作背后的服务对象：
- execute: 前台执行（受超时约束）或后台执行（立即返回 job id）
- get_status: 读取后台 Job 快照，已完成的 Job 读取后即被清理

命令本身的失败（启动失败、管道 I/O 错误、超时）总是写入结果，不抛出。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..runtime import (
    DEFAULT_TIMEOUT_MS,
    ProcessRunner,
    ProcessSpec,
    ShellProcess,
    TimeoutSupervisor,
    normalize_exit_code,
)
from .job import Job, JobSnapshot, generate_job_id
from .table import JobTable

if TYPE_CHECKING:
    from ..config import Config

__all__ = ["JobManager", "ExecResult", "BackgroundStarted"]

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "bash"


@dataclass(frozen=True)
class ExecResult:
    """前台执行结果。"""

    stdout: str
    stderr: str
    exit_code: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
        }


@dataclass(frozen=True)
class BackgroundStarted:
    """后台执行的立即返回值。"""

    job_id: str
    pid: int

    def to_dict(self) -> dict[str, Any]:
        return {"jobId": self.job_id, "pid": self.pid}


def _format_ms(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class JobManager:
    """命令执行服务。

    每个后台 Job 由一个 watcher task 负责：把输出追加到 Job，
    管道全部 EOF 并回收进程后写入退出码。

    Example:
        ```python
        jobs = JobManager()

        result = await jobs.execute("echo hello")
        assert result.stdout == "hello\\n"

        started = await jobs.start_background("sleep 1; echo done")
        snapshot = jobs.get_status(started.job_id)  # running=True
        ```

    Attributes:
        table: 后台 Job 注册表
        shell: 执行 ``-c <command>`` 的 shell
        default_timeout_ms: 未指定 timeout 时的前台超时
    """

    def __init__(
        self,
        *,
        shell: str = DEFAULT_SHELL,
        default_timeout_ms: float = DEFAULT_TIMEOUT_MS,
        cwd: Path | None = None,
        runner: ProcessRunner | None = None,
        supervisor: TimeoutSupervisor | None = None,
        table: JobTable | None = None,
    ) -> None:
        self.shell = shell
        self.default_timeout_ms = default_timeout_ms
        self.cwd = cwd
        self.table = table if table is not None else JobTable()
        self._runner = runner if runner is not None else ProcessRunner()
        self._supervisor = supervisor if supervisor is not None else TimeoutSupervisor()
        # watcher task -> 它负责的进程
        self._watchers: dict[asyncio.Task, ShellProcess] = {}

    @classmethod
    def from_config(cls, config: "Config") -> "JobManager":
        return cls(shell=config.shell, default_timeout_ms=config.default_timeout_ms)

    def _spec(self, command: str) -> ProcessSpec:
        return ProcessSpec.shell(command, shell=self.shell, cwd=self.cwd)

    # ------------------------------------------------------------------
    # 前台执行
    # ------------------------------------------------------------------

    async def execute(self, command: str, timeout_ms: float | None = None) -> ExecResult:
        """前台执行命令，直到自然结束或超时被终止。"""
        if timeout_ms is None:
            timeout_ms = self.default_timeout_ms

        stdout: list[str] = []
        stderr: list[str] = []

        try:
            process = await self._runner.start(self._spec(command))
        except OSError as e:
            logger.warning(f"Failed to start shell '{self.shell}': {e}")
            return ExecResult(stdout="", stderr=f"\nProcess error: {e}", exit_code=1)

        try:
            outcome = await self._supervisor.run(
                process,
                timeout_ms / 1000,
                on_stdout=stdout.append,
                on_stderr=stderr.append,
            )
        except OSError as e:
            logger.warning(f"I/O error while running pid={process.pid}: {e}")
            stderr.append(f"\nProcess error: {e}")
            return ExecResult(stdout="".join(stdout), stderr="".join(stderr), exit_code=1)

        if outcome.timed_out:
            stderr.append(f"\nProcess timed out after {_format_ms(timeout_ms)}ms")

        return ExecResult(
            stdout="".join(stdout),
            stderr="".join(stderr),
            exit_code=outcome.exit_code,
        )

    # ------------------------------------------------------------------
    # 后台执行
    # ------------------------------------------------------------------

    async def start_background(self, command: str) -> BackgroundStarted:
        """启动后台 Job 并立即返回，不等待任何输出。

        启动失败不会抛出：Job 直接进入 COMPLETED（退出码 1），
        错误说明写入 stderr，由后续的状态查询取回。
        """
        job = self._register_new_job()

        try:
            process = await self._runner.start(self._spec(command))
        except OSError as e:
            logger.warning(f"Failed to start background job {job.job_id}: {e}")
            job.fail(e)
            return BackgroundStarted(job_id=job.job_id, pid=job.pid)

        job.attach(process)
        task = asyncio.create_task(self._watch(job, process), name=f"job-{job.job_id}")
        self._watchers[task] = process
        task.add_done_callback(lambda t: self._watchers.pop(t, None))

        logger.info(f"Started background job {job.job_id} pid={process.pid}")
        return BackgroundStarted(job_id=job.job_id, pid=process.pid)

    def _register_new_job(self) -> Job:
        while True:
            job = Job(generate_job_id())
            try:
                self.table.insert(job)
                return job
            except ValueError:
                logger.debug(f"Job id collision: {job.job_id}, regenerating")

    async def _watch(self, job: Job, process: ShellProcess) -> None:
        try:
            returncode = await process.communicate(job.append_stdout, job.append_stderr)
            job.complete(normalize_exit_code(returncode))
        except OSError as e:
            logger.warning(f"I/O error in background job {job.job_id}: {e}")
            job.fail(e)
        except Exception as e:
            logger.exception(f"Unexpected error in background job {job.job_id}")
            job.fail(e)
        finally:
            await process.aclose()

    def get_status(self, job_id: str) -> JobSnapshot:
        """读取后台 Job 快照（不阻塞）。

        Raises:
            JobNotFoundError: id 未知或已在之前读取完成状态时被清理
        """
        return self.table.read_and_maybe_evict(job_id)

    async def close(self) -> int:
        """终止所有仍在运行的后台 Job（进程退出前调用）。

        watcher 被取消时未必已经进入 _watch()（此时它的 finally 不会执行），
        所以这里在取消之后再逐个关闭进程组。

        Returns:
            被取消的 watcher 数量
        """
        pending = [(task, process) for task, process in self._watchers.items() if not task.done()]
        for task, _ in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*(task for task, _ in pending), return_exceptions=True)
            for _, process in pending:
                await process.aclose()
            logger.info(f"Terminated {len(pending)} running background job(s)")
        return len(pending)
