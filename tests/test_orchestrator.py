"""RequestRegistry 模块测试。

测试请求注册表的基本功能：
- 请求登记和注销
- 批量取消
- track() 上下文管理器
"""

from __future__ import annotations

import asyncio
from unittest import mock

import pytest

from shell_exec_mcp.orchestrator import RequestInfo, RequestRegistry


def make_task(done: bool = False) -> mock.MagicMock:
    task = mock.MagicMock(spec=asyncio.Task)
    task.done.return_value = done
    return task


class TestRequestRegistry:
    """RequestRegistry 基本功能测试。"""

    def test_generate_request_id(self):
        """生成唯一请求 ID。"""
        id1 = RequestRegistry.generate_request_id()
        id2 = RequestRegistry.generate_request_id()
        assert id1 != id2
        assert len(id1) == 36  # UUID4 格式

    def test_register_and_unregister(self):
        """登记和注销请求。"""
        registry = RequestRegistry()
        registry.register("req-1", "execute", make_task())
        assert "req-1" in registry
        assert len(registry) == 1

        assert registry.unregister("req-1") is True
        assert "req-1" not in registry
        assert len(registry) == 0

    def test_register_duplicate_raises_error(self):
        """登记重复请求 ID 时抛出错误。"""
        registry = RequestRegistry()
        registry.register("req-1", "execute", make_task())

        with pytest.raises(ValueError, match="already registered"):
            registry.register("req-1", "get_job_status", make_task())

    def test_unregister_nonexistent_returns_false(self):
        registry = RequestRegistry()
        assert registry.unregister("nonexistent") is False


class TestRequestRegistryCancellation:
    """取消测试。"""

    def test_cancel_all(self):
        registry = RequestRegistry()
        running1, running2, done = make_task(), make_task(), make_task(done=True)
        registry.register("req-1", "execute", running1)
        registry.register("req-2", "execute", running2)
        registry.register("req-3", "get_job_status", done)

        assert registry.cancel_all() == 2
        running1.cancel.assert_called_once()
        running2.cancel.assert_called_once()
        done.cancel.assert_not_called()

    def test_cancel_all_empty(self):
        assert RequestRegistry().cancel_all() == 0

    @pytest.mark.asyncio
    async def test_cancel_real_task(self):
        registry = RequestRegistry()
        task = asyncio.create_task(asyncio.sleep(10))
        registry.register("req-1", "execute", task)

        registry.cancel_all()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestTrack:
    """track() 上下文管理器测试。"""

    @pytest.mark.asyncio
    async def test_registers_current_task(self):
        registry = RequestRegistry()

        with registry.track("execute", "echo hi") as request_id:
            info = registry._calls[request_id]
            assert info.task is asyncio.current_task()
            assert info.summary == "echo hi"
            assert len(registry) == 1

        assert request_id not in registry

    @pytest.mark.asyncio
    async def test_unregisters_on_error(self):
        registry = RequestRegistry()

        with pytest.raises(RuntimeError):
            with registry.track("execute"):
                raise RuntimeError("boom")

        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_cancel_all_reaches_tracked_call(self):
        registry = RequestRegistry()
        entered = asyncio.Event()

        async def call() -> None:
            with registry.track("execute", "sleep 10"):
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(call())
        await entered.wait()

        assert registry.cancel_all() == 1
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(registry) == 0

    def test_outside_task_yields_none(self):
        registry = RequestRegistry()
        with mock.patch("shell_exec_mcp.orchestrator.asyncio.current_task", return_value=None):
            with registry.track("execute") as request_id:
                assert request_id is None
        assert len(registry) == 0


class TestRequestInfo:
    """RequestInfo 测试。"""

    def test_repr_running(self):
        info = RequestInfo(
            request_id="12345678-1234-1234-1234-123456789012",
            tool_name="execute",
            task=make_task(),
            summary="ls -la",
        )
        text = repr(info)
        assert text.startswith("<execute 'ls -la' 12345678 running ")
        assert info.running is True

    def test_repr_done(self):
        info = RequestInfo(request_id="abcdefgh-0000", tool_name="get_job_status", task=make_task(done=True))
        assert " done " in repr(info)
        assert info.running is False
