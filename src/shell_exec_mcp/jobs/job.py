"""后台 Job 数据模型。

一个 Job 对应一条在后台执行的命令：
- STARTING: 已分配 id，子进程尚未创建
- RUNNING: 子进程已创建，输出持续累积
- COMPLETED: 退出码已写入（只写一次），输出不再变化
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..runtime import ShellProcess

__all__ = ["Job", "JobState", "JobSnapshot", "generate_job_id"]

logger = logging.getLogger(__name__)


def generate_job_id() -> str:
    """生成 job id。

    Returns:
        8 位十六进制短码
    """
    return uuid.uuid4().hex[:8]


class JobState(Enum):
    """Job 状态，只能单向前进。"""

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class JobSnapshot:
    """某一时刻的 Job 状态快照。"""

    stdout: str
    stderr: str
    exit_code: int | None

    @property
    def running(self) -> bool:
        return self.exit_code is None

    def to_dict(self) -> dict[str, Any]:
        """转换为工具结果字典。"""
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "running": self.running,
        }


class Job:
    """一条后台命令的状态。

    输出累积和退出码写入来自 watcher task，快照读取来自请求处理，
    两者通过 Job 自己的锁串行化。

    Attributes:
        job_id: 外部唯一句柄
        started_at: 创建时间（仅供展示）
        process: 子进程句柄（创建失败时为 None）
    """

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.started_at = datetime.now()
        self.process: "ShellProcess | None" = None
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._exit_code: int | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> JobState:
        with self._lock:
            if self._exit_code is not None:
                return JobState.COMPLETED
            if self.process is None:
                return JobState.STARTING
            return JobState.RUNNING

    @property
    def pid(self) -> int:
        """子进程 pid，未能创建子进程时为 0。"""
        return self.process.pid if self.process is not None else 0

    @property
    def exit_code(self) -> int | None:
        with self._lock:
            return self._exit_code

    def attach(self, process: "ShellProcess") -> None:
        """STARTING -> RUNNING。"""
        with self._lock:
            if self.process is not None or self._exit_code is not None:
                raise RuntimeError(f"Job {self.job_id} is not starting")
            self.process = process

    def append_stdout(self, text: str) -> None:
        self._append(self._stdout, text)

    def append_stderr(self, text: str) -> None:
        self._append(self._stderr, text)

    def _append(self, buffer: list[str], text: str) -> None:
        with self._lock:
            if self._exit_code is not None:
                logger.debug(f"Dropping output for completed job {self.job_id}")
                return
            buffer.append(text)

    def complete(self, exit_code: int) -> bool:
        """写入退出码（RUNNING/STARTING -> COMPLETED）。

        Returns:
            是否由本次调用完成（已完成的 Job 返回 False，退出码不变）
        """
        with self._lock:
            if self._exit_code is not None:
                return False
            self._exit_code = exit_code
        logger.debug(f"Job {self.job_id} completed exit_code={exit_code}")
        return True

    def fail(self, error: BaseException) -> bool:
        """以进程级错误结束 Job：追加 stderr 说明，退出码为 1。"""
        with self._lock:
            if self._exit_code is not None:
                return False
            self._stderr.append(f"\nProcess error: {error}")
            self._exit_code = 1
        logger.debug(f"Job {self.job_id} failed: {error}")
        return True

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                stdout="".join(self._stdout),
                stderr="".join(self._stderr),
                exit_code=self._exit_code,
            )

    def __repr__(self) -> str:
        elapsed = (datetime.now() - self.started_at).total_seconds()
        return (
            f"Job(id={self.job_id}, "
            f"state={self.state.value}, "
            f"pid={self.pid}, "
            f"elapsed={elapsed:.1f}s)"
        )
