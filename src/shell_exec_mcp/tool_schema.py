"""Tool Schema 定义。

包含工具标题、描述、参数 schema 和 schema 创建函数。
"""

from __future__ import annotations

from typing import Any

from .runtime import DEFAULT_TIMEOUT_MS

__all__ = [
    "SUPPORTED_TOOLS",
    "TOOL_TITLES",
    "TOOL_DESCRIPTIONS",
    "create_tool_schema",
]

# 支持的工具列表（按注册顺序）
SUPPORTED_TOOLS = ["execute", "get_job_status"]

TOOL_TITLES = {
    "execute": "Execute",
    "get_job_status": "Get Job Status",
}

# 工具描述
TOOL_DESCRIPTIONS = {
    "execute": """Run a command in bash.

Returns stdout, stderr, and exit code. Default timeout is 5 seconds.

For long-running commands, set 'background: true' to run in background and get a job ID. Then use get_job_status to check on it.

Tips:
- Use background mode for commands that take more than a few seconds
- For file searches, use 'find' or 'grep'
- For file operations, use 'mv', 'rm', 'mkdir -p', 'stat' etc.""",

    "get_job_status": """Check status of a background job.

Returns stdout/stderr collected so far, exit code (null if still running), and whether the job is still running.

Completed jobs are cleaned up after their status is read.""",
}

EXECUTE_PROPERTIES = {
    "command": {
        "type": "string",
        "description": "The bash command to run",
    },
    "timeout": {
        "type": "number",
        "minimum": 0,
        "description": f"Timeout in milliseconds (default: {DEFAULT_TIMEOUT_MS})",
    },
    "background": {
        "type": "boolean",
        "description": "Run in background and return job ID",
    },
}

GET_JOB_STATUS_PROPERTIES = {
    "jobId": {
        "type": "string",
        "description": "The job ID returned from execute with background: true",
    },
}


def create_tool_schema(tool_name: str) -> dict[str, Any]:
    """创建工具的 JSON Schema（不接受未知字段）。

    Raises:
        KeyError: 未知工具名称
    """
    if tool_name == "execute":
        properties, required = EXECUTE_PROPERTIES, ["command"]
    elif tool_name == "get_job_status":
        properties, required = GET_JOB_STATUS_PROPERTIES, ["jobId"]
    else:
        raise KeyError(tool_name)

    return {
        "type": "object",
        "properties": dict(properties),
        "required": required,
        "additionalProperties": False,
    }
