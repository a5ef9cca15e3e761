"""Streamable HTTP 传输。

POST /mcp，无状态、JSON 响应：每个请求一个独立会话，
但所有会话共享同一个 JobManager，因此后台 Job 可以跨请求查询。
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from .jobs import JobManager
from .orchestrator import RequestRegistry
from .server import create_server

__all__ = ["create_http_app", "MCP_PATH"]

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"


class _MCPEndpoint:
    """把 ASGI 请求交给 session manager。"""

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


def create_http_app(
    jobs: JobManager,
    registry: RequestRegistry | None = None,
) -> Starlette:
    """创建 Starlette 应用。

    Args:
        jobs: 所有请求共享的执行服务
        registry: 请求注册表（可选）
    """
    server = create_server(jobs, registry)
    session_manager = StreamableHTTPSessionManager(
        app=server,
        event_store=None,
        json_response=True,
        stateless=True,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            logger.debug("Streamable HTTP session manager started")
            yield
        logger.debug("Streamable HTTP session manager stopped")

    return Starlette(
        routes=[Route(MCP_PATH, endpoint=_MCPEndpoint(session_manager), methods=["POST"])],
        lifespan=lifespan,
    )
