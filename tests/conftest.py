"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shell_exec_mcp.jobs import Job, JobManager  # noqa: E402
from shell_exec_mcp.runtime import ProcessRunner, TimeoutSupervisor  # noqa: E402


@pytest.fixture
def runner() -> ProcessRunner:
    """短超时的 ProcessRunner。"""
    return ProcessRunner(term_timeout=0.5, kill_timeout=0.5)


@pytest.fixture
def jobs(runner: ProcessRunner) -> JobManager:
    """使用默认 5 秒超时的 JobManager。"""
    return JobManager(
        runner=runner,
        supervisor=TimeoutSupervisor(grace_period=1.0, reap_timeout=1.0),
    )


@pytest.fixture
def wait_for_job():
    """返回一个协程函数：轮询 Job 表直到 Job 完成（不触发清理）。"""

    async def _wait(manager: JobManager, job_id: str, timeout: float = 5.0) -> Job:
        deadline = time.monotonic() + timeout
        while True:
            job = manager.table.lookup(job_id)
            assert job is not None, f"job {job_id} disappeared"
            if job.exit_code is not None:
                return job
            assert time.monotonic() < deadline, f"job {job_id} did not complete"
            await asyncio.sleep(0.02)

    return _wait


def _pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    # 孤儿僵尸进程是否被回收取决于容器的 init，按已退出处理
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text().rsplit(")", 1)[1].split()[0]
    except (FileNotFoundError, IndexError):
        return not stat.parent.parent.exists()
    return state != "Z"


@pytest.fixture
def wait_pid_gone():
    """返回一个协程函数：轮询直到 pid 对应的进程退出，返回是否已退出。"""

    async def _wait(pid: int, timeout: float = 3.0) -> bool:
        deadline = time.monotonic() + timeout
        while _pid_running(pid):
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(0.05)
        return True

    return _wait
