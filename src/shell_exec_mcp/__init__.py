"""shell-exec-mcp - 以 MCP 工具形式执行 shell 命令。

工具:
    execute: 前台执行（默认 5 秒超时）或后台执行（返回 job id）
    get_job_status: 查询后台 Job，已完成的 Job 读取后即被清理

环境变量:
    MCP_TRANSPORT: stdio (默认) / http
    PORT: HTTP 端口 (默认 3000)
    SEM_SHELL: 执行命令的 shell (默认 bash)

用法:
    uvx shell-exec-mcp
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
