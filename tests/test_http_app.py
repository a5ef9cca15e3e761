"""Streamable HTTP 传输测试。

使用 Starlette TestClient（运行 lifespan）验证：
- 只有 POST /mcp 可用
- 无状态模式下无需 initialize 即可调用 tools/list、tools/call
- 多个请求共享同一张 Job 表
"""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from shell_exec_mcp.http_app import MCP_PATH, create_http_app
from shell_exec_mcp.jobs import JobManager
from shell_exec_mcp.runtime.process_runner import IS_WINDOWS

HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}


def rpc(client: TestClient, method: str, params: dict | None = None, request_id: int = 1):
    payload = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = params
    response = client.post(MCP_PATH, json=payload, headers=HEADERS)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def client(jobs: JobManager):
    app = create_http_app(jobs)
    with TestClient(app) as test_client:
        yield test_client


class TestRouting:

    def test_mcp_path(self):
        assert MCP_PATH == "/mcp"

    def test_get_not_allowed(self, client: TestClient):
        assert client.get(MCP_PATH).status_code == 405

    def test_unknown_path(self, client: TestClient):
        assert client.post("/other", json={}, headers=HEADERS).status_code == 404


class TestStatelessRequests:

    def test_tools_list(self, client: TestClient):
        body = rpc(client, "tools/list")
        names = [tool["name"] for tool in body["result"]["tools"]]
        assert names == ["execute", "get_job_status"]

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX shell required")
    def test_execute(self, client: TestClient):
        body = rpc(client, "tools/call", {"name": "execute", "arguments": {"command": "echo hi"}})
        result = body["result"]
        assert result["isError"] is False
        assert result["structuredContent"] == {"stdout": "hi\n", "stderr": "", "exitCode": 0}

    def test_unknown_job_is_tool_error(self, client: TestClient):
        body = rpc(
            client,
            "tools/call",
            {"name": "get_job_status", "arguments": {"jobId": "nonexistent"}},
        )
        assert body["result"]["isError"] is True
        assert "Job not found" in body["result"]["content"][0]["text"]

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX shell required")
    @pytest.mark.timeout(15)
    def test_jobs_shared_across_requests(self, client: TestClient):
        started = rpc(
            client,
            "tools/call",
            {"name": "execute", "arguments": {"command": "echo bg", "background": True}},
        )
        job_id = started["result"]["structuredContent"]["jobId"]

        status = None
        for request_id in range(2, 200):
            body = rpc(
                client,
                "tools/call",
                {"name": "get_job_status", "arguments": {"jobId": job_id}},
                request_id=request_id,
            )
            status = body["result"]["structuredContent"]
            if not status["running"]:
                break

        assert status["stdout"] == "bg\n"
        assert status["exitCode"] == 0
