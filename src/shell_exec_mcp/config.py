"""环境变量配置管理。

环境变量:
    MCP_TRANSPORT: 传输方式
        - stdio = 标准输入输出 (默认)
        - http = Streamable HTTP (POST /mcp)

    PORT: HTTP 监听端口 (默认 3000)

    MCP_HOST: HTTP 监听地址 (默认 0.0.0.0)

    MCP_BASE_URL: 对外展示的服务地址
        - 默认 http://localhost:{PORT}

    SEM_SHELL: 执行命令使用的 shell (默认 bash)
        - 命令以 `<shell> -c <command>` 方式执行

    SEM_DEFAULT_TIMEOUT_MS: 前台执行的默认超时（毫秒，默认 5000）

    SEM_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    SEM_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间（秒）
        - 默认 1.0 秒
        - 在此时间窗口内第二次 Ctrl+C 将强制退出
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .runtime import DEFAULT_TIMEOUT_MS

__all__ = ["Config", "load_config", "get_config", "reload_config", "SUPPORTED_TRANSPORTS"]

SUPPORTED_TRANSPORTS = frozenset({"stdio", "http"})

DEFAULT_PORT = 3000


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_timeout_ms(value: str | None) -> float:
    """解析默认超时，非法值或负数回退到 5000。"""
    if not value:
        return DEFAULT_TIMEOUT_MS
    try:
        timeout = float(value)
    except ValueError:
        return DEFAULT_TIMEOUT_MS
    return timeout if timeout >= 0 else DEFAULT_TIMEOUT_MS


def _parse_double_tap_window(value: str | None) -> float:
    """解析双击窗口时间环境变量。"""
    if not value:
        return 1.0
    try:
        window = float(value)
        return max(0.1, min(window, 10.0))  # 限制在 0.1-10 秒范围
    except ValueError:
        return 1.0


@dataclass
class Config:
    """服务配置。

    Attributes:
        transport: 传输方式（原样保留，未知值由启动入口报错）
        port: HTTP 监听端口
        host: HTTP 监听地址
        base_url: 对外展示的服务地址
        shell: 执行命令使用的 shell
        default_timeout_ms: 前台执行默认超时（毫秒）
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        sigint_double_tap_window: 双击退出窗口时间（秒）
    """

    transport: str = "stdio"
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    base_url: str = f"http://localhost:{DEFAULT_PORT}"
    shell: str = "bash"
    default_timeout_ms: float = DEFAULT_TIMEOUT_MS
    log_debug: bool = False
    log_file: str | None = None
    sigint_double_tap_window: float = 1.0

    @property
    def transport_supported(self) -> bool:
        return self.transport in SUPPORTED_TRANSPORTS

    def __repr__(self) -> str:
        return (
            f"Config(transport={self.transport}, "
            f"port={self.port}, "
            f"host={self.host}, "
            f"base_url={self.base_url}, "
            f"shell={self.shell}, "
            f"default_timeout_ms={self.default_timeout_ms}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"sigint_double_tap_window={self.sigint_double_tap_window})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "shell-exec-mcp"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"sem_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("SEM_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    port = _parse_int(os.environ.get("PORT"), DEFAULT_PORT)
    base_url = os.environ.get("MCP_BASE_URL") or f"http://localhost:{port}"

    return Config(
        transport=(os.environ.get("MCP_TRANSPORT") or "stdio").strip().lower(),
        port=port,
        host=os.environ.get("MCP_HOST") or "0.0.0.0",
        base_url=base_url,
        shell=os.environ.get("SEM_SHELL") or "bash",
        default_timeout_ms=_parse_timeout_ms(os.environ.get("SEM_DEFAULT_TIMEOUT_MS")),
        log_debug=log_debug,
        log_file=log_file,
        sigint_double_tap_window=_parse_double_tap_window(
            os.environ.get("SEM_SIGINT_DOUBLE_TAP_WINDOW")
        ),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
