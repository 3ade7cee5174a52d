"""
后台事件循环线程

每个 Sink 拥有一个守护线程，线程内运行独立的 asyncio 事件循环。
宿主线程只通过 wake()/stop() 与之交互，不会等待网络 I/O。
"""

import asyncio
import contextlib
import threading
from collections.abc import Awaitable, Callable

from loguru import logger


class BackgroundLoop:
    """
    可中断的周期任务宿主

    main 协程通过 sleep(timeout) 等待下一次定时，wake() 和 stop()
    都会立即打断等待。
    """

    def __init__(self, name: str):
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._wake_event: asyncio.Event | None = None
        self._started = threading.Event()
        self._stopping = threading.Event()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, main: Callable[[], Awaitable[None]]) -> None:
        """启动线程并等待事件循环就绪"""
        if self._thread is not None:
            return

        self._thread = threading.Thread(target=self._run, args=(main,), name=self.name, daemon=True)
        self._thread.start()
        self._started.wait()

    def _run(self, main: Callable[[], Awaitable[None]]) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._wake_event = asyncio.Event()
        self._started.set()

        try:
            loop.run_until_complete(main())
        except Exception as e:
            logger.exception(f"[{self.name}] 后台循环异常退出: {e}")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def wake(self) -> None:
        """唤醒正在等待的 main 协程（线程安全）"""
        loop, event = self._loop, self._wake_event
        if loop is None or event is None or loop.is_closed():
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(event.set)

    async def sleep(self, timeout: float) -> bool:
        """
        可中断等待

        Returns:
            是否被 wake()/stop() 提前唤醒
        """
        if self.stopping:
            return True

        woke = True
        try:
            await asyncio.wait_for(self._wake_event.wait(), timeout)
        except asyncio.TimeoutError:
            woke = False
        self._wake_event.clear()
        return woke

    def stop(self, timeout: float | None = None) -> bool:
        """
        请求停止并等待线程退出

        Returns:
            线程是否在超时前退出
        """
        self._stopping.set()
        self.wake()

        if self._thread is None:
            return True
        if self._thread is threading.current_thread():
            return False

        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(f"[{self.name}] 后台线程未在 {timeout}s 内退出")
            return False
        return True
