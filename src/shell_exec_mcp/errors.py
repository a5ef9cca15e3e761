"""shell-exec-mcp 异常类。

只有调用方误用（错误的参数、未知的 job id）才会抛出异常；
命令本身的失败（启动失败、I/O 错误、超时）总是写入结果，不抛出。
"""

from __future__ import annotations

__all__ = [
    "ShellExecError",
    "JobNotFoundError",
    "InvalidArgumentsError",
]


class ShellExecError(Exception):
    """shell-exec-mcp 基础异常。"""
    pass


class JobNotFoundError(ShellExecError):
    """job id 未知，或已在上一次读取完成状态时被清理。

    Attributes:
        job_id: 查询的 job id
    """

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidArgumentsError(ShellExecError):
    """工具参数校验失败（类型错误、缺少字段或包含未知字段）。"""
    pass
