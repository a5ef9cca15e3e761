"""Tool Handler 基础抽象。

定义工具处理器的协议和上下文。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ValidationError

from ..errors import InvalidArgumentsError
from ..tool_schema import TOOL_DESCRIPTIONS, TOOL_TITLES, create_tool_schema

if TYPE_CHECKING:
    from ..jobs import JobManager

__all__ = [
    "ToolContext",
    "ToolHandler",
]


@dataclass
class ToolContext:
    """工具执行上下文。

    封装工具执行所需的所有依赖。``jobs`` 可以被多个 server 实例共享
    （HTTP 传输下每个请求一个会话，但共享同一张 Job 表）。
    """

    jobs: "JobManager"


class ToolHandler(ABC):
    """工具处理器协议。

    子类声明 ``name`` 和参数模型 ``args_model``，实现 ``handle``。
    """

    name: ClassVar[str]
    args_model: ClassVar[type[BaseModel]]

    @property
    def title(self) -> str:
        return TOOL_TITLES[self.name]

    @property
    def description(self) -> str:
        return TOOL_DESCRIPTIONS[self.name]

    def get_input_schema(self) -> dict[str, Any]:
        return create_tool_schema(self.name)

    def parse_arguments(self, arguments: dict[str, Any] | None) -> BaseModel:
        """按参数模型校验参数。

        Raises:
            InvalidArgumentsError: 类型错误、缺少字段或包含未知字段
        """
        try:
            return self.args_model.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidArgumentsError(f"Invalid arguments for '{self.name}': {e}") from e

    @abstractmethod
    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        """处理工具调用。

        Args:
            arguments: 工具参数
            ctx: 执行上下文

        Returns:
            结构化结果（同时以 JSON 文本返回给客户端）
        """
        ...
