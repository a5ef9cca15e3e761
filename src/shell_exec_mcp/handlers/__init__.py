"""Tool Handlers 模块。

提供工具处理器抽象和具体实现。
"""

from .base import ToolContext, ToolHandler
from .execute import ExecuteArguments, ExecuteHandler
from .job_status import JobStatusArguments, JobStatusHandler

__all__ = [
    "ToolContext",
    "ToolHandler",
    "ExecuteArguments",
    "ExecuteHandler",
    "JobStatusArguments",
    "JobStatusHandler",
    "create_handlers",
]


def create_handlers() -> dict[str, ToolHandler]:
    """按注册顺序创建全部工具处理器。"""
    handlers: list[ToolHandler] = [ExecuteHandler(), JobStatusHandler()]
    return {handler.name: handler for handler in handlers}
