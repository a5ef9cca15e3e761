"""get_job_status 工具处理器。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import ToolContext, ToolHandler

__all__ = ["JobStatusHandler", "JobStatusArguments"]


class JobStatusArguments(BaseModel):
    """get_job_status 参数。"""

    model_config = ConfigDict(extra="forbid", strict=True)

    job_id: str = Field(alias="jobId")


class JobStatusHandler(ToolHandler):
    """get_job_status 工具。

    已完成的 Job 在本次读取后被清理，再次查询会抛出 JobNotFoundError。
    """

    name = "get_job_status"
    args_model = JobStatusArguments

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> dict[str, Any]:
        args = self.parse_arguments(arguments)
        return ctx.jobs.get_status(args.job_id).to_dict()
