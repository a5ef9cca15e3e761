"""shell-exec-mcp Server。

注册 execute / get_job_status 两个工具。结果以结构化内容返回，
同时附带缩进 JSON 文本；调用方误用（未知 job id、非法参数）以工具错误返回。
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.types import Tool

from . import __version__
from .errors import ShellExecError
from .handlers import ToolContext, create_handlers
from .jobs import JobManager
from .orchestrator import RequestRegistry

__all__ = ["create_server", "SERVER_NAME"]

logger = logging.getLogger(__name__)

SERVER_NAME = "shell-exec-mcp"


def create_server(
    jobs: JobManager,
    registry: RequestRegistry | None = None,
) -> Server:
    """创建 MCP Server 实例。

    Args:
        jobs: 执行服务（多个 server 实例可共享同一个以共享 Job 表）
        registry: 请求注册表（可选，用于信号触发的取消）
    """
    server = Server(SERVER_NAME, version=__version__)
    handlers = create_handlers()
    tool_ctx = ToolContext(jobs=jobs)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        tools = [
            Tool(
                name=handler.name,
                title=handler.title,
                description=handler.description,
                inputSchema=handler.get_input_schema(),
            )
            for handler in handlers.values()
        ]
        logger.debug(f"[MCP] list_tools called, returning {[t.name for t in tools]}")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        logger.debug(
            f"[MCP] call_tool request: {name} "
            f"{json.dumps(arguments, ensure_ascii=False, default=str)[:500]}"
        )

        handler = handlers.get(name)
        if handler is None:
            raise ShellExecError(f"Unknown tool '{name}'")

        summary = str(arguments.get("command") or arguments.get("jobId") or "")[:40]
        tracking = registry.track(name, summary) if registry is not None else contextlib.nullcontext()

        with tracking:
            try:
                return await handler.handle(arguments, tool_ctx)

            except asyncio.CancelledError:
                logger.info(f"Tool '{name}' cancelled")
                raise

            except ShellExecError as e:
                logger.info(f"Tool '{name}' rejected: {e}")
                raise

            except Exception:
                logger.exception(f"Tool '{name}' failed")
                raise

    return server
