"""execute 工具处理器。

前台模式返回 {stdout, stderr, exitCode}，后台模式返回 {jobId, pid}。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import ToolContext, ToolHandler

__all__ = ["ExecuteHandler", "ExecuteArguments"]

logger = logging.getLogger(__name__)


class ExecuteArguments(BaseModel):
    """execute 参数。"""

    model_config = ConfigDict(extra="forbid", strict=True)

    command: str
    timeout: Optional[float] = Field(default=None, ge=0)
    background: Optional[bool] = None


class ExecuteHandler(ToolHandler):
    """execute 工具。"""

    name = "execute"
    args_model = ExecuteArguments

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        args = self.parse_arguments(arguments)

        if args.background:
            started = await ctx.jobs.start_background(args.command)
            return started.to_dict()

        logger.debug(f"execute: command={args.command[:100]!r} timeout={args.timeout}")
        result = await ctx.jobs.execute(args.command, args.timeout)
        return result.to_dict()
