"""shell-exec-mcp 应用入口。

包含传输选择、服务器生命周期管理和主入口点。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys

import uvicorn
from mcp.server.stdio import stdio_server

from .config import Config, get_config
from .http_app import MCP_PATH, create_http_app
from .jobs import JobManager
from .orchestrator import RequestRegistry
from .server import SERVER_NAME, create_server
from .signal_manager import SignalManager

__all__ = ["run_server", "main"]

logger = logging.getLogger(__name__)

FORCE_EXIT_CODE = 130  # 128 + SIGINT(2)


async def _run_stdio(jobs: JobManager, registry: RequestRegistry) -> bool:
    """在 stdio 上运行 MCP server。

    使用并发任务架构：
    - server_task: 运行 MCP server
    - shutdown_watcher: 监听 shutdown 事件并取消 server_task

    Returns:
        是否请求了强制退出（双击 SIGINT）
    """
    server = create_server(jobs, registry)
    server_task: asyncio.Task | None = None

    def on_shutdown() -> None:
        # 关闭 stdin 以中断 stdio_server 的阻塞读取
        try:
            sys.stdin.close()
        except Exception as e:
            logger.debug(f"Error closing stdin: {e}")

    signal_manager = SignalManager(registry=registry, on_shutdown=on_shutdown)

    async def _serve() -> None:
        async with stdio_server() as (read_stream, write_stream):
            logger.info(f"{SERVER_NAME} running on stdio")
            await server.run(read_stream, write_stream, server.create_initialization_options())

    async def _watch_shutdown() -> None:
        await signal_manager.wait_for_shutdown()
        logger.info("Shutdown signal received, cancelling server task...")
        if server_task and not server_task.done():
            server_task.cancel()

    await signal_manager.start()
    server_task = asyncio.create_task(_serve(), name="mcp-server")
    shutdown_watcher = asyncio.create_task(_watch_shutdown(), name="shutdown-watcher")
    try:
        await server_task
        logger.info("stdio closed by client")
    except asyncio.CancelledError:
        # 只吞掉信号触发的取消；外部取消 run_server 时继续向上传播
        if not signal_manager.is_shutdown_requested:
            raise
        logger.info("Server task cancelled by shutdown signal")
    finally:
        shutdown_watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await shutdown_watcher
        await signal_manager.stop()

    return signal_manager.is_force_exit


async def _run_http(config: Config, jobs: JobManager, registry: RequestRegistry) -> None:
    """在 Streamable HTTP 上运行 MCP server。

    SIGINT/SIGTERM 由 uvicorn 处理：停止接收新请求，等待进行中的请求结束。
    """
    app = create_http_app(jobs, registry)
    http_server = uvicorn.Server(
        uvicorn.Config(app, host=config.host, port=config.port, log_level="warning")
    )
    logger.info(f"{SERVER_NAME} running on {config.base_url}{MCP_PATH}")
    await http_server.serve()


async def run_server() -> None:
    """运行 MCP Server，退出前终止仍在运行的后台 Job。"""
    config = get_config()
    logger.info(f"Starting {SERVER_NAME}: {config}")

    jobs = JobManager.from_config(config)
    registry = RequestRegistry()
    force_exit = False

    try:
        if config.transport == "http":
            await _run_http(config, jobs, registry)
        else:
            force_exit = await _run_stdio(jobs, registry)
    finally:
        await jobs.close()
        logger.info("run_server: cleanup completed")

    if force_exit:
        logger.warning(f"Force exit requested, terminating with exit code {FORCE_EXIT_CODE}")
        sys.exit(FORCE_EXIT_CODE)


def _configure_logging(config: Config) -> None:
    """配置日志输出（stdout 是 stdio 传输的协议通道，日志只能去 stderr 或文件）。"""
    if config.log_debug and config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO

    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )

    # root logger（第三方库）保持 WARNING，减少噪音
    logging.basicConfig(level=logging.WARNING, handlers=[handler])
    logging.getLogger("shell_exec_mcp").setLevel(log_level)


def main() -> None:
    """主入口点。"""
    config = get_config()
    _configure_logging(config)

    if not config.transport_supported:
        logger.error(
            f"Unknown transport: {config.transport}. "
            f"Use MCP_TRANSPORT=stdio or MCP_TRANSPORT=http"
        )
        sys.exit(1)

    asyncio.run(run_server())


if __name__ == "__main__":
    main()
