"""后台 Job 注册表。

job id -> Job 的映射，由 JobManager 持有（不是模块级全局变量），
多个 server 实例可以各自持有一张表，也可以显式共享同一张。
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from ..errors import JobNotFoundError
from .job import Job, JobSnapshot

__all__ = ["JobTable"]

logger = logging.getLogger(__name__)


class JobTable:
    """后台 Job 注册表。

    提供：
    - insert: 登记新 Job（id 不可重复）
    - lookup: 按 id 查询
    - read_and_maybe_evict: 读取快照，已完成的 Job 在同一临界区内移除

    线程安全：所有操作都在 ``_lock`` 内执行。锁顺序固定为
    表锁 -> Job 锁，Job 的写操作从不获取表锁。

    Example:
        ```python
        table = JobTable()
        table.insert(job)

        snapshot = table.read_and_maybe_evict(job.job_id)
        if not snapshot.running:
            # job 已被移除，再次读取会抛出 JobNotFoundError
            ...
        ```
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def insert(self, job: Job) -> None:
        """登记 Job。

        Raises:
            ValueError: 如果 job_id 已存在
        """
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already registered")
            self._jobs[job.job_id] = job
        logger.debug(f"Registered job: {job}")

    def lookup(self, job_id: str) -> Optional[Job]:
        """按 id 查询，不存在返回 None。"""
        with self._lock:
            return self._jobs.get(job_id)

    def read_and_maybe_evict(self, job_id: str) -> JobSnapshot:
        """读取 Job 快照；若已完成则同时移除。

        已完成的 Job 最多只能被成功读取一次。

        Raises:
            JobNotFoundError: id 未知或已被移除
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            snapshot = job.snapshot()
            if not snapshot.running:
                del self._jobs[job_id]
                logger.debug(f"Evicted completed job: {job_id}")

        return snapshot

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs
