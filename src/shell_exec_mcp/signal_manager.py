"""信号管理模块。

stdio 传输下把 OS 信号转换为关闭流程：
- SIGINT / SIGTERM: 取消进行中的工具调用，唤醒 wait_for_shutdown()
- 双击窗口内的第二次 SIGINT: 标记强制退出，主循环清理后以 130 退出

HTTP 传输下信号由 uvicorn 处理，不使用本模块。
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import Callable, Optional

from .config import get_config
from .orchestrator import RequestRegistry

__all__ = ["SignalManager"]

logger = logging.getLogger(__name__)

_HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalManager:
    """信号管理器。

    Example:
        ```python
        manager = SignalManager(registry, on_shutdown=close_stdin)
        await manager.start()
        try:
            await manager.wait_for_shutdown()
        finally:
            await manager.stop()
        if manager.is_force_exit:
            sys.exit(130)
        ```

    Attributes:
        registry: 进行中调用的注册表
        double_tap_window: 两次 SIGINT 被视为双击的最大间隔（秒）
    """

    def __init__(
        self,
        registry: RequestRegistry,
        double_tap_window: Optional[float] = None,
        on_shutdown: Optional[Callable[[], None]] = None,
    ) -> None:
        if double_tap_window is None:
            double_tap_window = get_config().sigint_double_tap_window
        self.registry = registry
        self.double_tap_window = double_tap_window
        self._on_shutdown = on_shutdown

        self._last_sigint: Optional[float] = None
        self._shutdown_requested = False
        self._force_exit = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stopped: Optional[asyncio.Event] = None

    @property
    def is_shutdown_requested(self) -> bool:
        return self._shutdown_requested

    @property
    def is_force_exit(self) -> bool:
        return self._force_exit

    @property
    def installed(self) -> bool:
        return self._loop is not None

    async def start(self) -> None:
        """在当前事件循环上安装 SIGINT/SIGTERM 处理器。"""
        if self.installed:
            logger.warning("Signal handlers already installed")
            return

        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()

        for sig in _HANDLED_SIGNALS:
            if sys.platform == "win32":
                signal.signal(sig, lambda signum, _frame: self._dispatch(signum))
            else:
                self._loop.add_signal_handler(sig, self._dispatch, sig)
        logger.debug(f"Signal handlers installed (double_tap_window={self.double_tap_window}s)")

    async def stop(self) -> None:
        """恢复默认信号处理。"""
        if not self.installed:
            return

        for sig in _HANDLED_SIGNALS:
            if sys.platform == "win32":
                signal.signal(sig, signal.SIG_DFL)
            else:
                self._loop.remove_signal_handler(sig)
        self._loop = None
        logger.debug("Signal handlers removed")

    async def wait_for_shutdown(self) -> None:
        if self._stopped is not None:
            await self._stopped.wait()

    def _dispatch(self, signum: int) -> None:
        if signum == signal.SIGINT:
            self._handle_sigint()
        else:
            self._handle_sigterm()

    def _handle_sigint(self) -> None:
        now = time.monotonic()
        double_tap = (
            self._shutdown_requested
            and self._last_sigint is not None
            and now - self._last_sigint < self.double_tap_window
        )
        self._last_sigint = now

        if double_tap:
            logger.warning("Second SIGINT within window, forcing exit")
            self._force_exit = True
        else:
            logger.info("SIGINT received, shutting down")
        self._request_shutdown()

    def _handle_sigterm(self) -> None:
        logger.info("SIGTERM received, shutting down")
        self._request_shutdown()

    def _request_shutdown(self) -> None:
        first_request = not self._shutdown_requested
        self._shutdown_requested = True

        cancelled = self.registry.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} in-flight call(s)")

        if first_request and self._on_shutdown is not None:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.warning(f"Shutdown callback failed: {e}")

        if self._stopped is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._stopped.set)
