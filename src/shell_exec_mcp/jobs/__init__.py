"""后台 Job 模块。

提供 Job 数据模型、Job 注册表和执行服务。
"""

from .job import Job, JobSnapshot, JobState, generate_job_id
from .manager import BackgroundStarted, ExecResult, JobManager
from .table import JobTable

__all__ = [
    "Job",
    "JobSnapshot",
    "JobState",
    "JobTable",
    "JobManager",
    "ExecResult",
    "BackgroundStarted",
    "generate_job_id",
]
