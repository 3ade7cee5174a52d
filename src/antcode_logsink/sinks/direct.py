"""
直发 Sink

不落盘：记录先进入内存队列，达到批次上限立即发送，否则每个周期发送一次。
发送失败只记录日志和计数，不重试，已取出的记录直接丢弃。
"""

import asyncio
import threading
from collections import deque
from collections.abc import Callable

from loguru import logger

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.errors import ConfigurationError, LogSinkError, SinkClosedError
from antcode_logsink.domain.models import LogRecord, SubmitOutcome
from antcode_logsink.shipping.loop import BackgroundLoop
from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.transport.base import TransportBase
from antcode_logsink.utils.exceptions import map_exception


class DirectSink(LogEventSink):
    """
    直发 Sink

    队列长度受 queue_limit 限制，远端持续不可用时丢弃最旧的记录，
    内存不会无限增长。
    """

    def __init__(
        self,
        options: SinkOptions,
        transport: TransportBase,
        on_batch_sent: Callable[[int, bool], None] | None = None,
        on_send_error: Callable[[LogSinkError], None] | None = None,
    ):
        if transport is None:
            raise ConfigurationError("transport 不能为空", field="transport")

        super().__init__(options)

        self._transport = transport
        self._batch_limit = options.batch_posting_limit
        self._period = options.period
        self._send_timeout = options.send_timeout
        self._shutdown_timeout = options.shutdown_timeout
        self._on_batch_sent = on_batch_sent
        self._on_send_error = on_send_error

        self._pending: deque[LogRecord] = deque(maxlen=options.queue_limit)
        self._lock = threading.Lock()

        # 统计
        self._batches_sent = 0
        self._records_sent = 0
        self._records_failed = 0
        self._records_dropped = 0
        self._last_error: str | None = None

        self._runner = BackgroundLoop(f"logsink-direct-{self.stream_name}")
        self._runner.start(self._run)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _emit_record(self, record: LogRecord) -> bool:
        with self._lock:
            if len(self._pending) == self._pending.maxlen:
                self._records_dropped += 1
            self._pending.append(record)
            full = len(self._pending) >= self._batch_limit

        if full:
            self._runner.wake()
        return True

    def _take_batch(self) -> list[LogRecord]:
        with self._lock:
            count = min(len(self._pending), self._batch_limit)
            return [self._pending.popleft() for _ in range(count)]

    async def flush(self) -> int:
        """
        发送当前队列中的全部记录

        Returns:
            成功发送的记录数

        Raises:
            SinkClosedError: Sink 已关闭
        """
        if self.closed:
            raise SinkClosedError()
        return await self._drain()

    async def _drain(self) -> int:
        sent = 0
        while True:
            batch = self._take_batch()
            if not batch:
                return sent
            if await self._send(batch):
                sent += len(batch)

    async def _send(self, batch: list[LogRecord]) -> bool:
        records = [record.data for record in batch]
        error: LogSinkError | None = None
        try:
            outcome = await asyncio.wait_for(
                self._transport.submit(self.stream_name, records),
                timeout=self._send_timeout,
            )
        except Exception as e:
            error = map_exception(e, operation="submit")
            outcome = SubmitOutcome.failed(error.message)

        if outcome.is_success:
            self._batches_sent += 1
            self._records_sent += len(batch)
            self._notify_batch_sent(len(batch), True)
            return True

        rejected = len(outcome.rejected) if outcome.rejected else len(batch)
        self._records_sent += len(batch) - rejected
        self._records_failed += rejected
        self._last_error = outcome.reason or (error.message if error else None)
        logger.warning(
            f"[{self.stream_name}] 日志批次发送失败，丢弃 {rejected}/{len(batch)} 条: "
            f"{self._last_error}"
        )
        self._notify_batch_sent(len(batch), False)
        if self._on_send_error:
            try:
                self._on_send_error(
                    error or LogSinkError(self._last_error or "发送失败", code="SUBMIT_REJECTED")
                )
            except Exception as e:
                logger.error(f"[{self.stream_name}] 错误回调异常: {e}")
        return False

    async def _run(self) -> None:
        """
        后台主循环：等待周期或唤醒，然后发送

        定时按固定节拍触发，达到批次上限的提前发送不会推迟下一次定时。
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._period
        try:
            while not self._runner.stopping:
                await self._runner.sleep(max(0.0, deadline - loop.time()))
                if self._runner.stopping:
                    break

                now = loop.time()
                if now >= deadline:
                    deadline += self._period
                    if deadline <= now:
                        deadline = now + self._period
                try:
                    await self._drain()
                except Exception as e:
                    logger.error(f"[{self.stream_name}] 发送周期异常: {e}")

            try:
                await asyncio.wait_for(self._drain(), timeout=self._shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[{self.stream_name}] 关闭前发送超时")
        finally:
            try:
                await self._transport.close()
            except Exception as e:
                logger.warning(f"[{self.stream_name}] 关闭传输层失败: {e}")

    def _close(self) -> None:
        self._runner.stop(self._shutdown_timeout + self._send_timeout)

        with self._lock:
            remaining = len(self._pending)
            self._pending.clear()
        if remaining:
            self._records_dropped += remaining
            logger.warning(f"[{self.stream_name}] 关闭时丢弃 {remaining} 条未发送日志")
        logger.info(f"[{self.stream_name}] 直发 Sink 已关闭")

    def _notify_batch_sent(self, count: int, success: bool) -> None:
        if self._on_batch_sent:
            try:
                self._on_batch_sent(count, success)
            except Exception as e:
                logger.error(f"[{self.stream_name}] 批次回调异常: {e}")

    def get_stats(self) -> dict:
        stats = super().get_stats()
        stats.update({
            "mode": "direct",
            "pending": self.pending_count,
            "batches_sent": self._batches_sent,
            "records_sent": self._records_sent,
            "records_failed": self._records_failed,
            "records_dropped": self._records_dropped,
            "last_error": self._last_error,
        })
        return stats
