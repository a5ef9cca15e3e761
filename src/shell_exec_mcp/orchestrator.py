"""进行中的工具调用登记。

SIGINT/SIGTERM 到来时，SignalManager 通过 RequestRegistry 取消
所有进行中的工具调用；被取消的前台 execute 会终止它的子进程。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Dict, Optional

__all__ = ["RequestRegistry", "RequestInfo"]

logger = logging.getLogger(__name__)


@dataclass
class RequestInfo:
    """一次进行中的工具调用。

    Attributes:
        request_id: 调用标识（UUID4）
        tool_name: execute / get_job_status
        task: 执行该调用的 asyncio Task
        summary: 日志用的简短说明（如命令前缀）
    """

    request_id: str
    tool_name: str
    task: asyncio.Task
    summary: str = ""
    started: float = field(default_factory=time.monotonic)

    @property
    def running(self) -> bool:
        return not self.task.done()

    def __repr__(self) -> str:
        state = "running" if self.running else "done"
        age = time.monotonic() - self.started
        label = f" {self.summary!r}" if self.summary else ""
        return f"<{self.tool_name}{label} {self.request_id[:8]} {state} {age:.1f}s>"


class RequestRegistry:
    """进行中工具调用的注册表（单事件循环内使用，不加锁）。"""

    def __init__(self) -> None:
        self._calls: Dict[str, RequestInfo] = {}

    @staticmethod
    def generate_request_id() -> str:
        return str(uuid.uuid4())

    def register(
        self,
        request_id: str,
        tool_name: str,
        task: asyncio.Task,
        summary: str = "",
    ) -> RequestInfo:
        """Raises ValueError if request_id is taken."""
        if request_id in self._calls:
            raise ValueError(f"Request {request_id} already registered")
        info = RequestInfo(request_id, tool_name, task, summary)
        self._calls[request_id] = info
        logger.debug(f"Tracking call {info}")
        return info

    def unregister(self, request_id: str) -> bool:
        info = self._calls.pop(request_id, None)
        if info is not None:
            logger.debug(f"Finished call {info}")
        return info is not None

    @contextlib.contextmanager
    def track(self, tool_name: str, summary: str = "") -> Iterator[Optional[str]]:
        """在当前 Task 的生命周期内登记一次调用。

        不在 Task 中运行时不登记，yield None。
        """
        task = asyncio.current_task()
        if task is None:
            yield None
            return

        request_id = self.generate_request_id()
        self.register(request_id, tool_name, task, summary)
        try:
            yield request_id
        finally:
            self.unregister(request_id)

    def cancel_all(self) -> int:
        """取消全部未结束的调用，返回取消的数量。"""
        pending = [info for info in self._calls.values() if info.running]
        for info in pending:
            info.task.cancel()
            logger.info(f"Cancelling {info}")
        return len(pending)

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, request_id: str) -> bool:
        return request_id in self._calls
